from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PartialDataWarning(BaseModel):
    """
    Non-fatal failure of a sub-operation.

    The owning result is still returned, with the affected field defaulted.

    Attributes
    ----------
    source : str
        Sub-operation that failed (e.g. ``token_balance``, ``logs.sent``)
    message : str
        Error description
    """
    source: str
    message: str

    model_config = ConfigDict(frozen=True)


class BalanceSnapshot(BaseModel):
    """
    Entity representing wallet balances at the latest block.

    Attributes
    ----------
    wallet_address : str
        Wallet address (lower case)
    native_balance_raw : int
        Native balance in the smallest unit
    native_balance : str
        Native balance as exact decimal string
    token_balance_raw : int
        Token balance in the smallest unit
    token_balance : str
        Token balance as exact decimal string
    usd_value : Decimal
        Priced balance in USD, zero when no price is known
    price_available : bool
        False means ``usd_value`` is unknown rather than zero
    as_of : datetime
        When the snapshot was taken
    warnings : list[PartialDataWarning]
        Degraded sub-results
    """
    wallet_address: str
    native_balance_raw: int
    native_balance: str
    token_balance_raw: int
    token_balance: str
    usd_value: Decimal
    price_available: bool
    as_of: datetime
    warnings: list[PartialDataWarning] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class CollectedTransaction(BaseModel):
    """
    Transaction found by a block scan, augmented with its block data.

    Attributes
    ----------
    hash : str
        Transaction hash
    from_address : str
        Sender
    to_address : str | None
        Recipient, None for contract creation
    value : int
        Transferred native amount in the smallest unit
    value_formatted : str
        ``value`` scaled by the native decimals
    gas_price : int
        Gas price in the smallest unit
    gas : int
        Gas limit
    input : str
        Call data
    transaction_index : int
        Position inside the block
    block_number : int
        Containing block
    block_timestamp : int
        Containing block timestamp (unix seconds)
    created_contract_address : str | None
        Contract deployed by the transaction, from its receipt
    """
    hash: str
    from_address: str
    to_address: str | None
    value: int
    value_formatted: str
    gas_price: int
    gas: int
    input: str
    transaction_index: int
    block_number: int
    block_timestamp: int
    created_contract_address: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_contract_creation(self) -> bool:
        return self.to_address is None

    @property
    def has_input(self) -> bool:
        return len(self.input) > 2


class TransactionHistory(BaseModel):
    """Result of a backward block scan."""
    transactions: list[CollectedTransaction]
    latest_block: int
    blocks_scanned: int
    warnings: list[PartialDataWarning] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class TransferDirection(str, Enum):
    SENT = "sent"
    RECEIVED = "received"


class TransferLogEvent(BaseModel):
    """
    Decoded ``Transfer(address,address,uint256)`` log.

    Attributes
    ----------
    transaction_hash : str
        Transaction that emitted the log
    block_number : int
        Block of the log
    log_index : int
        Log position in the block
    from_address : str
        Sender from topics[1]
    to_address : str
        Recipient from topics[2]
    amount : int
        Token amount in the smallest unit
    amount_formatted : str
        ``amount`` scaled by the token decimals
    direction : TransferDirection
        Which query surfaced the log
    """
    transaction_hash: str
    block_number: int
    log_index: int
    from_address: str
    to_address: str
    amount: int
    amount_formatted: str
    direction: TransferDirection

    model_config = ConfigDict(frozen=True)


class TransferHistory(BaseModel):
    """Merged sent/received transfers for a wallet."""
    events: list[TransferLogEvent]
    from_block: int
    latest_block: int
    warnings: list[PartialDataWarning] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class InvolvedBalance(BaseModel):
    address: str
    balance_raw: int
    balance: str

    model_config = ConfigDict(frozen=True)


class InvolvedBalances(BaseModel):
    """Native balances of every address touched by recent transactions."""
    balances: list[InvolvedBalance]
    transactions: list[CollectedTransaction]
    warnings: list[PartialDataWarning] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)
