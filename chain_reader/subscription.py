import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import aiohttp
from pydantic import ValidationError

from chain_reader.conversion import normalize_address
from chain_reader.rpc_models import JsonRpcRequest, JsonRpcResponse, RpcLog
from chain_reader.transfers import TRANSFER_TOPIC, involves_address
from core.exceptions import BaseCustomException, FormatError, RpcError, SubscriptionError

SUBSCRIBE_REQUEST_ID = 1


class RefreshTarget(Protocol):
    wallet_address: str

    async def refresh(self) -> bool:
        ...


class LogSubscriptionListener:
    """
    Websocket ``logs`` subscription triggering wallet refreshes.

    Transfer logs of the token contract are streamed; a log whose sender or
    recipient is the session wallet triggers ``session.refresh()``.

    Reconnects with exponential backoff. Each connection that got its
    subscription confirmed resets the failure counter; ``retry_count``
    consecutive failures raise ``SubscriptionError``.

    Parameters
    ----------
    ws_url : str
        Websocket endpoint of the node
    contract_address : str
        Token contract emitting Transfer logs
    session : RefreshTarget
        Wallet session to refresh
    logger : logging.Logger
        Logger instance
    retry_count : int
        Consecutive failures tolerated
    retry_sleep : float
        First reconnect delay in seconds
    retry_multiplier : float
        Delay multiplier after each failure
    retry_max_sleep : float
        Delay cap
    http_session : aiohttp.ClientSession | None
        Session used to open the websocket
    sleep : Callable[[float], Awaitable[None]]
        Delay function
    """

    def __init__(
        self,
        ws_url: str,
        contract_address: str,
        session: RefreshTarget,
        logger: logging.Logger,
        retry_count: int = 5,
        retry_sleep: float = 1.0,
        retry_multiplier: float = 2.0,
        retry_max_sleep: float = 30.0,
        http_session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.ws_url = ws_url
        self.contract_address = normalize_address(contract_address)
        self.session = session
        self.logger = logger
        self.retry_count = retry_count
        self.retry_sleep = retry_sleep
        self.retry_multiplier = retry_multiplier
        self.retry_max_sleep = retry_max_sleep
        self._http_session = http_session
        self._sleep = sleep

        self.subscription_id: str | None = None
        self._confirmed = False

    def build_subscribe_request(self) -> JsonRpcRequest:
        return JsonRpcRequest(
            id=SUBSCRIBE_REQUEST_ID,
            method="eth_subscribe",
            params=["logs", {"address": self.contract_address, "topics": [TRANSFER_TOPIC]}]
        )

    async def handle_message(self, data: dict[str, Any]) -> None:
        """
        Process one websocket message.

        Raises
        ------
        RpcError
            If the node rejects the subscription
        """
        if "method" not in data and data.get("id") == SUBSCRIBE_REQUEST_ID:
            try:
                response = JsonRpcResponse.model_validate(data)
            except ValidationError as e:
                self.logger.warning(f"Malformed subscription response: {e}")
                return
            if response.error is not None:
                raise RpcError(response.error.code, response.error.message)
            self.subscription_id = response.result
            self._confirmed = True
            self.logger.info(f"Subscribed to Transfer logs with id {self.subscription_id}")
            return

        if data.get("method") != "eth_subscription":
            self.logger.debug(f"Ignoring websocket message: {data}")
            return

        params = data.get("params") or {}
        if params.get("subscription") != self.subscription_id:
            self.logger.debug(f"Ignoring notification for subscription {params.get('subscription')}")
            return

        try:
            log = RpcLog.model_validate(params.get("result"))
        except ValidationError as e:
            self.logger.warning(f"Malformed log notification: {e}")
            return

        try:
            if log.removed or not involves_address(log, self.session.wallet_address):
                return
        except FormatError as e:
            self.logger.warning(f"Malformed log notification {log.transaction_hash}: {e.message}")
            return

        self.logger.info(f"Real-time transfer detected: {log.transaction_hash}")
        try:
            await self.session.refresh()
        except BaseCustomException as e:
            self.logger.error(f"Refresh after transfer {log.transaction_hash} failed: {e.message}")

    async def _listen_once(self, http_session: aiohttp.ClientSession) -> None:
        self._confirmed = False
        async with http_session.ws_connect(self.ws_url, heartbeat=30) as ws:
            self.logger.info(f"Connected to {self.ws_url}")
            await ws.send_json(self.build_subscribe_request().model_dump())

            async for message in ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    try:
                        data = json.loads(message.data)
                    except ValueError:
                        self.logger.warning(f"Non-JSON websocket message: {message.data[:200]}")
                        continue
                    if isinstance(data, dict):
                        await self.handle_message(data)
                elif message.type == aiohttp.WSMsgType.ERROR:
                    raise aiohttp.ClientConnectionError(f"Websocket error: {ws.exception()}")

    async def run(self) -> None:
        """
        Keep the subscription alive until cancelled.

        Raises
        ------
        SubscriptionError
            After ``retry_count`` consecutive failed connections
        """
        owns_session = self._http_session is None
        http_session = self._http_session or aiohttp.ClientSession()
        failures = 0
        delay = self.retry_sleep

        try:
            while True:
                try:
                    await self._listen_once(http_session)
                    self.logger.warning("Log subscription connection closed")
                except (aiohttp.ClientError, asyncio.TimeoutError, RpcError) as e:
                    self.logger.error(f"Websocket connection error: {e}")
                finally:
                    self.subscription_id = None

                if self._confirmed:
                    failures = 0
                    delay = self.retry_sleep

                failures += 1
                if failures >= self.retry_count:
                    raise SubscriptionError(
                        f"error.subscription.failed: {failures} consecutive failures"
                    )

                self.logger.info(f"Reconnecting in {delay:.1f}s ({failures}/{self.retry_count})")
                await self._sleep(delay)
                delay = min(delay * self.retry_multiplier, self.retry_max_sleep)
        finally:
            if owns_session:
                await http_session.close()
