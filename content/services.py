import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import aiohttp
from pydantic import ValidationError

from content.schemas import BuyLinkDetail, CreateGatedLinkRequest, CreatorLinksResponse, LinkItem
from core.exceptions import BadRequestException, ContentAPIException


def usd_to_token_units(price_usd: Decimal, token_price_usd: Decimal | None, decimals: int) -> str:
    """
    Convert a USD price into whole smallest token units.

    Parameters
    ----------
    price_usd : Decimal
        Price in USD
    token_price_usd : Decimal | None
        USD price of one token
    decimals : int
        Token decimals

    Returns
    -------
    str
        Integer amount, rounded half-up

    Raises
    ------
    BadRequestException
        If the token price is unknown or not positive
    """
    if token_price_usd is None or token_price_usd <= 0:
        raise BadRequestException("error.price.unavailable")
    units = price_usd / token_price_usd * (Decimal(10) ** decimals)
    return str(units.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class ContentAPIService:
    """
    Client of the content backend (gated links and purchases).

    Parameters
    ----------
    base_url : str
        Backend base URL
    logger : logging.Logger
        Logger instance
    timeout : float
        Request timeout in seconds
    session : aiohttp.ClientSession | None
        Shared HTTP session; one per request when omitted
    """

    def __init__(
        self,
        base_url: str,
        logger: logging.Logger,
        timeout: float = 20.0,
        session: aiohttp.ClientSession | None = None
    ):
        self.base_url = base_url.rstrip("/")
        self.logger = logger
        self.timeout = timeout
        self._session = session

    async def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        self.logger.info(f"{method} {url}")

        session = self._session or aiohttp.ClientSession()
        try:
            async with session.request(
                method,
                url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                body = await response.text()
                if not 200 <= response.status < 300:
                    self.logger.warning(f"{method} {url} failed with {response.status}: {body[:200]}")
                    raise ContentAPIException(response.status, body)
                if not body:
                    return None
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ContentAPIException(response.status, body) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ContentAPIException(None, str(e)) from e
        finally:
            if self._session is None:
                await session.close()

    async def get_buy_link(self, short_code: str) -> BuyLinkDetail:
        """
        Fetch purchase details of a buy short code.

        Parameters
        ----------
        short_code : str
            Buy short code

        Returns
        -------
        BuyLinkDetail
            Purchase details
        """
        data = await self._request("GET", f"/buy/{short_code}")
        try:
            return BuyLinkDetail.model_validate(data)
        except ValidationError as e:
            raise ContentAPIException(200, str(e)) from e

    async def list_creator_links(self, creator_address: str) -> list[LinkItem]:
        data = await self._request("GET", f"/links/creator/{creator_address}")
        try:
            return CreatorLinksResponse.model_validate(data).links
        except ValidationError as e:
            raise ContentAPIException(200, str(e)) from e

    async def create_gated_link(self, request: CreateGatedLinkRequest) -> None:
        await self._request("POST", "/create-gated-link", request.model_dump(by_alias=True))
        self.logger.info(f"Gated link created for {request.creator_address}")
