import asyncio
import logging
from unittest.mock import patch

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from chain_reader.subscription import LogSubscriptionListener
from chain_reader.transfers import TRANSFER_TOPIC
from core.exceptions import RpcError, SubscriptionError, TransportError

from tests.factories import OTHER, TOKEN, WALLET, make_transfer_log

SUBSCRIPTION_ID = "0x9cef478923ff08bf67fde6c64013158d"


class FakeSession:
    """Wallet session counting refresh requests."""

    def __init__(self, error: Exception | None = None):
        self.wallet_address = WALLET
        self.refreshes = 0
        self.error = error
        self.refreshed = asyncio.Event()

    async def refresh(self) -> bool:
        self.refreshes += 1
        self.refreshed.set()
        if self.error is not None:
            raise self.error
        return True


def make_listener(session, ws_url="ws://localhost:9650/ws", **kwargs) -> LogSubscriptionListener:
    return LogSubscriptionListener(
        ws_url=ws_url,
        contract_address=TOKEN,
        session=session,
        logger=logging.getLogger("test"),
        **kwargs
    )


def notification(log: dict, subscription: str = SUBSCRIPTION_ID) -> dict:
    return {
        "jsonrpc": "2.0",
        "method": "eth_subscription",
        "params": {"subscription": subscription, "result": log},
    }


async def confirm(listener: LogSubscriptionListener) -> None:
    await listener.handle_message({"jsonrpc": "2.0", "id": 1, "result": SUBSCRIPTION_ID})


class TestSubscriptionMessages:
    """Tests for handling subscription messages."""

    def test_subscribe_request(self):
        listener = make_listener(FakeSession())

        request = listener.build_subscribe_request().model_dump()

        assert request["method"] == "eth_subscribe"
        assert request["id"] == 1
        assert request["params"] == ["logs", {"address": TOKEN, "topics": [TRANSFER_TOPIC]}]

    @pytest.mark.asyncio
    async def test_confirmation_sets_subscription_id(self):
        listener = make_listener(FakeSession())

        await confirm(listener)

        assert listener.subscription_id == SUBSCRIPTION_ID

    @pytest.mark.asyncio
    async def test_rejected_subscription(self):
        listener = make_listener(FakeSession())

        with pytest.raises(RpcError):
            await listener.handle_message({
                "jsonrpc": "2.0",
                "id": 1,
                "error": {"code": -32601, "message": "notifications not supported"}
            })

    @pytest.mark.asyncio
    async def test_wallet_transfer_triggers_refresh(self):
        session = FakeSession()
        listener = make_listener(session)
        await confirm(listener)

        await listener.handle_message(notification(make_transfer_log(10, OTHER, WALLET, 1)))
        await listener.handle_message(notification(make_transfer_log(11, WALLET, OTHER, 1)))

        assert session.refreshes == 2

    @pytest.mark.asyncio
    async def test_unrelated_notifications_are_ignored(self):
        session = FakeSession()
        listener = make_listener(session)
        await confirm(listener)
        third = "0x2222222222222222222222222222222222222222"

        await listener.handle_message(notification(make_transfer_log(10, OTHER, third, 1)))
        await listener.handle_message(notification(make_transfer_log(10, OTHER, WALLET, 1), subscription="0xother"))
        await listener.handle_message(notification(make_transfer_log(10, OTHER, WALLET, 1, removed=True)))
        await listener.handle_message(notification({"topics": []}))
        await listener.handle_message({"jsonrpc": "2.0", "id": 7, "result": True})

        assert session.refreshes == 0

    @pytest.mark.asyncio
    async def test_short_topics_are_skipped(self):
        session = FakeSession()
        listener = make_listener(session)
        await confirm(listener)
        malformed = make_transfer_log(10, OTHER, WALLET, 1)
        malformed["topics"] = [TRANSFER_TOPIC, "0x01", "0x02"]

        await listener.handle_message(notification(malformed))
        await listener.handle_message(notification(make_transfer_log(11, OTHER, WALLET, 1)))

        assert session.refreshes == 1

    @pytest.mark.asyncio
    async def test_malformed_confirmation_is_skipped(self):
        listener = make_listener(FakeSession())

        await listener.handle_message({"jsonrpc": "2.0", "id": 1, "error": "not an error object"})

        assert listener.subscription_id is None

    @pytest.mark.asyncio
    async def test_refresh_failure_is_logged(self):
        session = FakeSession(error=TransportError(503, "unavailable"))
        listener = make_listener(session)
        await confirm(listener)

        await listener.handle_message(notification(make_transfer_log(10, OTHER, WALLET, 1)))

        assert session.refreshes == 1


class TestSubscriptionReconnect:
    """Tests for reconnect backoff."""

    @pytest.mark.asyncio
    async def test_backoff_until_retries_exhausted(self):
        delays: list[float] = []

        async def sleep(delay: float) -> None:
            delays.append(delay)

        async with aiohttp.ClientSession() as http_session:
            listener = make_listener(
                FakeSession(),
                retry_count=5,
                retry_sleep=1.0,
                retry_multiplier=2.0,
                retry_max_sleep=5.0,
                http_session=http_session,
                sleep=sleep
            )

            with patch.object(
                listener,
                "_listen_once",
                side_effect=aiohttp.ClientConnectionError("refused")
            ):
                with pytest.raises(SubscriptionError):
                    await listener.run()

        assert delays == [1.0, 2.0, 4.0, 5.0]
        assert listener.subscription_id is None

    @pytest.mark.asyncio
    async def test_confirmed_connection_resets_backoff(self):
        delays: list[float] = []
        attempts = 0

        async def sleep(delay: float) -> None:
            delays.append(delay)

        async with aiohttp.ClientSession() as http_session:
            listener = make_listener(
                FakeSession(),
                retry_count=3,
                retry_sleep=1.0,
                retry_multiplier=2.0,
                http_session=http_session,
                sleep=sleep
            )

            async def listen_once(session):
                nonlocal attempts
                attempts += 1
                listener._confirmed = attempts == 2
                raise aiohttp.ClientConnectionError("dropped")

            with patch.object(listener, "_listen_once", side_effect=listen_once):
                with pytest.raises(SubscriptionError):
                    await listener.run()

        assert attempts == 4
        assert delays == [1.0, 1.0, 2.0]


@pytest_asyncio.fixture
async def ws_node():
    """Websocket node confirming the subscription and pushing one wallet transfer."""
    received: list[dict] = []

    async def handler(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        received.append(await ws.receive_json())
        await ws.send_json({"jsonrpc": "2.0", "id": 1, "result": SUBSCRIPTION_ID})
        await ws.send_json(notification(make_transfer_log(10, OTHER, WALLET, 1)))
        await ws.receive()
        return ws

    app = web.Application()
    app.router.add_get("/ws", handler)
    server = TestServer(app)
    await server.start_server()
    yield server, received
    await server.close()


class TestSubscriptionOverWebsocket:
    """Tests for the listener against a local websocket node."""

    @pytest.mark.asyncio
    async def test_transfer_notification_triggers_refresh(self, ws_node):
        server, received = ws_node
        session = FakeSession()
        listener = make_listener(session, ws_url=str(server.make_url("/ws")))

        task = asyncio.create_task(listener.run())
        try:
            await asyncio.wait_for(session.refreshed.wait(), timeout=5)
        finally:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        assert received[0]["method"] == "eth_subscribe"
        assert received[0]["params"][1]["address"] == TOKEN
        assert session.refreshes == 1
