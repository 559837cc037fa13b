from contextlib import asynccontextmanager

from dishka import AsyncContainer
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from dishka.integrations.fastapi import setup_dishka

from core.container import container
from core.exception_handler import (
    validation_exception_handler,
    http_exception_handler,
    starlette_exception_handler,
    custom_exception_handler
)
from core.exceptions import BaseCustomException
from chain_reader.router import router as wallet_router
from content.router import router as content_router

VERSION = "0.3.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.dishka_container.close()


def create_app(app_container: AsyncContainer) -> FastAPI:
    """
    Build the FastAPI application around a dependency container.

    Parameters
    ----------
    app_container : AsyncContainer
        Dependency container

    Returns
    -------
    FastAPI
        Application instance
    """
    application = FastAPI(
        title="Wallet Chain Reader",
        version=VERSION,
        description="Balances and transfer history of wallets on an EVM chain",
        lifespan=lifespan,
    )

    setup_dishka(app_container, application)

    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(HTTPException, http_exception_handler)
    application.add_exception_handler(StarletteHTTPException, starlette_exception_handler)
    application.add_exception_handler(BaseCustomException, custom_exception_handler)
    application.add_exception_handler(Exception, custom_exception_handler)

    application.include_router(wallet_router)
    application.include_router(content_router)

    application.add_api_route("/", root, methods=["GET"])
    application.add_api_route("/health", health, methods=["GET"])
    return application


async def root():
    """
    Root endpoint.

    Returns
    -------
    dict
        Application information
    """
    return {
        "name": "Wallet Chain Reader",
        "version": VERSION,
        "endpoints": {
            "balance": "/api/wallet/balance",
            "transactions": "/api/wallet/transactions",
            "transfers": "/api/wallet/transfers",
            "involved_balances": "/api/wallet/involved-balances",
            "refresh": "/api/wallet/refresh",
            "state": "/api/wallet/state",
            "content": "/api/content",
            "docs": "/docs"
        }
    }


async def health():
    """
    Health check endpoint.

    Returns
    -------
    dict
        Health status
    """
    return {"status": "healthy", "version": VERSION}


app = create_app(container)
