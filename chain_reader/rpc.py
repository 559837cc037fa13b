import asyncio
import logging
from typing import Any, Protocol

import aiohttp
from pydantic import ValidationError

from chain_reader.rpc_models import JsonRpcRequest, JsonRpcResponse
from core.exceptions import FormatError, RpcError, RpcTimeoutError, TransportError


class JsonRpcTransport(Protocol):
    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        ...


class RPCTransport:
    """
    JSON-RPC 2.0 client over HTTP POST.

    One request per call, no retries; callers decide what to do with a
    failure.

    Parameters
    ----------
    rpc_url : str
        Node endpoint
    timeout : float
        Per-call timeout in seconds
    logger : logging.Logger
        Logger instance
    session : aiohttp.ClientSession | None
        Shared HTTP session; created lazily when omitted
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float,
        logger: logging.Logger,
        session: aiohttp.ClientSession | None = None
    ):
        if not rpc_url:
            raise ValueError("RPC URL cannot be empty")
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.logger = logger
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """
        Send a single JSON-RPC request and return its ``result``.

        Parameters
        ----------
        method : str
            RPC method name (e.g. ``eth_blockNumber``)
        params : list | None
            Positional parameters

        Returns
        -------
        Any
            Raw JSON value of ``result``

        Raises
        ------
        TransportError
            On connection failure or non-2xx status
        RpcTimeoutError
            When the call exceeds ``timeout``
        FormatError
            When the body is not a JSON-RPC envelope
        RpcError
            When the node answers with an error object
        """
        request = JsonRpcRequest(method=method, params=params or [])
        self.logger.debug(f"RPC -> {method} {request.params}")

        session = self._get_session()
        try:
            async with session.post(
                self.rpc_url,
                json=request.model_dump(),
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                body = await response.text()
                if not 200 <= response.status < 300:
                    raise TransportError(response.status, body)
        except asyncio.TimeoutError as e:
            raise RpcTimeoutError(method, self.timeout) from e
        except aiohttp.ClientError as e:
            raise TransportError(None, str(e)) from e

        try:
            envelope = JsonRpcResponse.model_validate_json(body)
        except ValidationError as e:
            raise FormatError(f"Malformed JSON-RPC response to {method}: {body[:200]}") from e

        if envelope.error is not None:
            self.logger.debug(f"RPC <- {method} error {envelope.error.code}: {envelope.error.message}")
            raise RpcError(envelope.error.code, envelope.error.message)

        return envelope.result
