"""Pydantic schemas for the JSON-RPC envelope and the chain objects we read."""
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from chain_reader.conversion import hex_to_int
from core.exceptions import FormatError


def _parse_hex(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("Hex quantity cannot be a boolean")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Hex quantity must be unsigned, got {value}")
        return value
    try:
        return hex_to_int(value)
    except FormatError as e:
        raise ValueError(e.message) from e


HexInt = Annotated[int, BeforeValidator(_parse_hex)]


class JsonRpcRequest(BaseModel):
    """
    JSON-RPC 2.0 request.

    Attributes
    ----------
    jsonrpc : str
        Protocol version
    id : int
        Request id; constant because calls are never pipelined
    method : str
        Method name
    params : list
        Positional parameters
    """
    jsonrpc: str = "2.0"
    id: int = 1
    method: str
    params: list[Any] = Field(default_factory=list)


class JsonRpcErrorObject(BaseModel):
    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """
    JSON-RPC 2.0 response envelope.

    Attributes
    ----------
    jsonrpc : str
        Protocol version
    id : int | str | None
        Request id echoed by the node
    result : Any
        Method result, absent when ``error`` is set
    error : JsonRpcErrorObject | None
        Error object
    """
    jsonrpc: str = "2.0"
    id: int | str | None = None
    result: Any = None
    error: JsonRpcErrorObject | None = None


class RpcTransaction(BaseModel):
    """Transaction object as returned inside a full block."""
    hash: str
    from_address: str = Field(..., alias="from")
    to: str | None = None
    value: HexInt = 0
    gas_price: HexInt = Field(default=0, alias="gasPrice")
    gas: HexInt = 0
    input: str = "0x"
    transaction_index: HexInt = Field(default=0, alias="transactionIndex")

    model_config = ConfigDict(populate_by_name=True)


class RpcBlock(BaseModel):
    """Block fetched with ``includeFullTransactions=true``."""
    number: HexInt
    timestamp: HexInt
    hash: str | None = None
    transactions: list[RpcTransaction] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class RpcLog(BaseModel):
    """Log entry from ``eth_getLogs`` or a ``logs`` subscription."""
    address: str
    topics: list[str] = Field(default_factory=list)
    data: str = "0x"
    block_number: HexInt = Field(default=0, alias="blockNumber")
    transaction_hash: str = Field(..., alias="transactionHash")
    log_index: HexInt = Field(default=0, alias="logIndex")
    removed: bool = False

    model_config = ConfigDict(populate_by_name=True)


class RpcReceipt(BaseModel):
    transaction_hash: str = Field(..., alias="transactionHash")
    contract_address: str | None = Field(default=None, alias="contractAddress")
    status: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class LogFilter(BaseModel):
    """``eth_getLogs`` filter object."""
    from_block: str = Field(..., alias="fromBlock")
    to_block: str = Field(default="latest", alias="toBlock")
    address: str
    topics: list[str | None] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def to_params(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
