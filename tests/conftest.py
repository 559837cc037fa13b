import logging
import os
from typing import Callable
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport


# Set test environment variables before imports
os.environ['RPC_URL'] = 'http://localhost:9650/rpc'
os.environ['WS_URL'] = ''
os.environ['TOKEN_CONTRACT_ADDRESS'] = '0x5425890298aed601595a70AB815c96711a31Bc65'
os.environ['NATIVE_DECIMALS'] = '8'
os.environ['TOKEN_DECIMALS'] = '18'
os.environ['USD_PRICE'] = '20'
os.environ['REFRESH_INTERVAL'] = '0'
os.environ['REDIS_PASSWORD'] = ''

from tests.factories import FakeTransport, OTHER, WALLET, make_chain, make_tx  # noqa: E402


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("chain_reader.tests")


@pytest.fixture
def make_transport() -> Callable[..., FakeTransport]:
    return FakeTransport


@pytest_asyncio.fixture
async def mock_redis():
    """Mock Redis client for testing."""
    mock = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    mock.setex = AsyncMock(return_value=True)
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def api_transport() -> FakeTransport:
    """Fake node with one outgoing native transfer in block 98 of 100."""
    handlers = make_chain(100, {98: [make_tx("0xabc", 0, sender=WALLET, to=OTHER, value=150_000_000)]})
    handlers.update({
        "eth_getBalance": hex(123_456),
        "eth_getCode": "0x",
        "eth_getLogs": [],
    })
    return FakeTransport(handlers)


@pytest_asyncio.fixture
async def client(mock_redis, api_transport):
    """
    Fixture for async test client with mocked Redis and chain.

    Parameters
    ----------
    mock_redis : AsyncMock
        Mocked Redis client
    api_transport : FakeTransport
        Fake JSON-RPC transport served to the chain reader

    Yields
    ------
    AsyncClient
        Async HTTP client for testing
    """
    with patch('core.redis.providers.Redis', return_value=mock_redis), \
            patch('chain_reader.providers.RPCTransport', return_value=api_transport):
        from core.container import create_container
        from main import create_app

        app_container = create_container()
        app = create_app(app_container)

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
        await app_container.close()
