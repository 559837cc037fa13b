"""Fake JSON-RPC node and block builders shared by the tests."""
import inspect
from typing import Any, Callable

from chain_reader.conversion import pad_address_topic
from chain_reader.transfers import TRANSFER_TOPIC
from core.exceptions import RpcError

WALLET = "0xe81430d54414dc122a6cd8ef48834fd17a41141b"
OTHER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x5425890298aed601595a70ab815c96711a31bc65"


class FakeTransport:
    """
    In-memory JSON-RPC transport counting calls.

    ``handlers`` maps a method to a constant result, an exception to raise,
    or a (possibly async) callable receiving the call params.
    """

    def __init__(self, handlers: dict[str, Any] | None = None):
        self.handlers = dict(handlers or {})
        self.calls: list[tuple[str, list]] = []

    async def call(self, method: str, params: list | None = None) -> Any:
        params = params or []
        self.calls.append((method, params))
        if method not in self.handlers:
            raise RpcError(-32601, f"the method {method} does not exist")
        handler = self.handlers[method]
        result = handler(*params) if callable(handler) else handler
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, BaseException):
            raise result
        return result

    def count(self, method: str) -> int:
        return sum(1 for called, _ in self.calls if called == method)

    def params_of(self, method: str) -> list[list]:
        return [params for called, params in self.calls if called == method]

    async def close(self) -> None:
        pass


def make_tx(
    tx_hash: str,
    index: int,
    sender: str = OTHER,
    to: str | None = WALLET,
    value: int = 0
) -> dict:
    return {
        "hash": tx_hash,
        "from": sender,
        "to": to,
        "value": hex(value),
        "gasPrice": "0x5d21dba00",
        "gas": "0x5208",
        "input": "0x",
        "transactionIndex": hex(index),
    }


def make_block(number: int, transactions: list[dict] | None = None, timestamp: int = 1_700_000_000) -> dict:
    return {
        "number": hex(number),
        "hash": "0x" + f"{number:064x}",
        "timestamp": hex(timestamp + number),
        "transactions": transactions or [],
    }


def make_chain(latest: int, blocks: dict[int, list[dict]] | None = None) -> dict[str, Callable]:
    """Handlers for a chain whose blocks are empty unless listed in ``blocks``."""
    blocks = blocks or {}

    def get_block(number_hex: str, full: bool) -> dict | None:
        number = int(number_hex, 16)
        if number > latest:
            return None
        return make_block(number, blocks.get(number))

    return {
        "eth_blockNumber": hex(latest),
        "eth_getBlockByNumber": get_block,
    }


def make_transfer_log(
    block_number: int,
    sender: str,
    recipient: str,
    amount: int,
    log_index: int = 0,
    tx_hash: str | None = None,
    removed: bool = False
) -> dict:
    return {
        "address": TOKEN,
        "topics": [TRANSFER_TOPIC, pad_address_topic(sender), pad_address_topic(recipient)],
        "data": "0x" + f"{amount:064x}",
        "blockNumber": hex(block_number),
        "transactionHash": tx_hash or "0x" + f"{block_number:060x}{log_index:04x}",
        "logIndex": hex(log_index),
        "removed": removed,
    }
