from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from web3 import Web3

from chain_reader.entities import (
    BalanceSnapshot,
    CollectedTransaction,
    InvolvedBalances,
    PartialDataWarning,
    TransactionHistory,
    TransferHistory,
    TransferLogEvent,
)
from chain_reader.session import WalletState


def validate_wallet_address(v: str) -> str:
    if not v.startswith('0x') or len(v) != 42 or not Web3.is_address(v.lower()):
        raise ValueError('Invalid Ethereum address format')
    return v.lower()


class WalletRequest(BaseModel):
    """
    Request schema for wallet scoped operations.

    Attributes
    ----------
    wallet_address : str
        Wallet address, any case
    """
    wallet_address: str = Field(..., description="Wallet address")

    @field_validator('wallet_address')
    @classmethod
    def validate_address(cls, v: str) -> str:
        return validate_wallet_address(v)

    model_config = ConfigDict(from_attributes=True)


class GetTransfersRequest(WalletRequest):
    """
    Request schema for Transfer log history.

    Attributes
    ----------
    wallet_address : str
        Wallet address
    limit : int
        Maximum number of transfers returned
    """
    limit: int = Field(default=5, gt=0, le=100, description="Maximum number of transfers")


class GetTransactionsRequest(BaseModel):
    """
    Request schema for the recent block scan.

    Attributes
    ----------
    count : int
        Number of most recent transactions wanted
    """
    count: int = Field(default=1, gt=0, le=200, description="Number of transactions")

    model_config = ConfigDict(from_attributes=True)


class WarningResponse(BaseModel):
    source: str
    message: str

    @classmethod
    def from_entity(cls, warning: PartialDataWarning) -> "WarningResponse":
        return cls(source=warning.source, message=warning.message)


def _warnings(warnings: list[PartialDataWarning]) -> list[WarningResponse]:
    return [WarningResponse.from_entity(w) for w in warnings]


class BalanceResponse(BaseModel):
    """
    Response schema for balance query.

    Raw amounts are strings: they may not fit a JSON number.

    Attributes
    ----------
    wallet_address : str
        Wallet address
    native_balance : str
        Native balance, decimal string
    native_balance_raw : str
        Native balance in the smallest unit
    token_balance : str
        Token balance, decimal string
    token_balance_raw : str
        Token balance in the smallest unit
    usd_value : str
        USD value of the priced balance
    price_available : bool
        False when ``usd_value`` is unknown
    as_of : datetime
        Snapshot time
    warnings : list[WarningResponse]
        Degraded sub-results
    """
    wallet_address: str
    native_balance: str
    native_balance_raw: str
    token_balance: str
    token_balance_raw: str
    usd_value: str
    price_available: bool
    as_of: datetime
    warnings: list[WarningResponse]

    @classmethod
    def from_entity(cls, snapshot: BalanceSnapshot) -> "BalanceResponse":
        return cls(
            wallet_address=snapshot.wallet_address,
            native_balance=snapshot.native_balance,
            native_balance_raw=str(snapshot.native_balance_raw),
            token_balance=snapshot.token_balance,
            token_balance_raw=str(snapshot.token_balance_raw),
            usd_value=str(snapshot.usd_value),
            price_available=snapshot.price_available,
            as_of=snapshot.as_of,
            warnings=_warnings(snapshot.warnings)
        )


class TransactionResponse(BaseModel):
    hash: str
    from_address: str
    to_address: str | None
    is_contract_creation: bool
    created_contract_address: str | None
    value: str
    value_raw: str
    gas_price: str
    gas: str
    input: str
    transaction_index: int
    block_number: int
    timestamp: datetime

    @classmethod
    def from_entity(cls, tx: CollectedTransaction) -> "TransactionResponse":
        return cls(
            hash=tx.hash,
            from_address=tx.from_address,
            to_address=tx.to_address,
            is_contract_creation=tx.is_contract_creation,
            created_contract_address=tx.created_contract_address,
            value=tx.value_formatted,
            value_raw=str(tx.value),
            gas_price=str(tx.gas_price),
            gas=str(tx.gas),
            input=tx.input,
            transaction_index=tx.transaction_index,
            block_number=tx.block_number,
            timestamp=datetime.fromtimestamp(tx.block_timestamp, tz=timezone.utc)
        )


class TransactionsResponse(BaseModel):
    """
    Response schema for the recent block scan.

    Attributes
    ----------
    latest_block : int
        Head block when the scan started
    blocks_scanned : int
        Number of blocks fetched
    transactions : list[TransactionResponse]
        Transactions, newest first
    total_transactions : int
        Number of transactions
    warnings : list[WarningResponse]
        Degraded sub-results
    """
    latest_block: int
    blocks_scanned: int
    transactions: list[TransactionResponse]
    total_transactions: int
    warnings: list[WarningResponse]

    @classmethod
    def from_entity(cls, history: TransactionHistory) -> "TransactionsResponse":
        return cls(
            latest_block=history.latest_block,
            blocks_scanned=history.blocks_scanned,
            transactions=[TransactionResponse.from_entity(tx) for tx in history.transactions],
            total_transactions=len(history.transactions),
            warnings=_warnings(history.warnings)
        )


class TransferResponse(BaseModel):
    transaction_hash: str
    block_number: int
    log_index: int
    from_address: str
    to_address: str
    amount: str
    amount_raw: str
    direction: str

    @classmethod
    def from_entity(cls, event: TransferLogEvent) -> "TransferResponse":
        return cls(
            transaction_hash=event.transaction_hash,
            block_number=event.block_number,
            log_index=event.log_index,
            from_address=event.from_address,
            to_address=event.to_address,
            amount=event.amount_formatted,
            amount_raw=str(event.amount),
            direction=event.direction.value
        )


class TransfersResponse(BaseModel):
    """
    Response schema for Transfer log history.

    Attributes
    ----------
    wallet_address : str
        Wallet address
    from_block : int
        First block of the queried window
    latest_block : int
        Head block at query time
    transfers : list[TransferResponse]
        Transfers, newest first
    total_transfers : int
        Number of transfers
    warnings : list[WarningResponse]
        Degraded sub-results
    """
    wallet_address: str
    from_block: int
    latest_block: int
    transfers: list[TransferResponse]
    total_transfers: int
    warnings: list[WarningResponse]

    @classmethod
    def from_entity(cls, wallet_address: str, history: TransferHistory) -> "TransfersResponse":
        return cls(
            wallet_address=wallet_address,
            from_block=history.from_block,
            latest_block=history.latest_block,
            transfers=[TransferResponse.from_entity(e) for e in history.events],
            total_transfers=len(history.events),
            warnings=_warnings(history.warnings)
        )


class InvolvedBalanceResponse(BaseModel):
    address: str
    balance: str
    balance_raw: str


class InvolvedBalancesResponse(BaseModel):
    balances: list[InvolvedBalanceResponse]
    transactions: list[TransactionResponse]
    warnings: list[WarningResponse]

    @classmethod
    def from_entity(cls, involved: InvolvedBalances) -> "InvolvedBalancesResponse":
        return cls(
            balances=[
                InvolvedBalanceResponse(address=b.address, balance=b.balance, balance_raw=str(b.balance_raw))
                for b in involved.balances
            ],
            transactions=[TransactionResponse.from_entity(tx) for tx in involved.transactions],
            warnings=_warnings(involved.warnings)
        )


class WalletStateResponse(BaseModel):
    """
    Response schema for a wallet session state.

    Attributes
    ----------
    wallet_address : str
        Wallet address
    balance : BalanceResponse | None
        Latest balance, None before the first refresh
    transactions : list[TransactionResponse]
        Recent native transactions of the wallet
    transfers : list[TransferResponse]
        Recent token transfers of the wallet
    warnings : list[WarningResponse]
        Degraded parts of the last refresh
    refreshed_at : datetime | None
        Last successful refresh
    error : str | None
        Last refresh failure
    refreshing : bool
        Whether a refresh is running
    """
    wallet_address: str
    balance: BalanceResponse | None
    transactions: list[TransactionResponse]
    transfers: list[TransferResponse]
    warnings: list[WarningResponse]
    refreshed_at: datetime | None
    error: str | None
    refreshing: bool

    @classmethod
    def from_entity(cls, state: WalletState, refreshing: bool) -> "WalletStateResponse":
        return cls(
            wallet_address=state.wallet_address,
            balance=BalanceResponse.from_entity(state.balance) if state.balance else None,
            transactions=[TransactionResponse.from_entity(tx) for tx in state.transactions],
            transfers=[TransferResponse.from_entity(e) for e in state.transfers],
            warnings=_warnings(state.warnings),
            refreshed_at=state.refreshed_at,
            error=state.error,
            refreshing=refreshing
        )


class RefreshResponse(BaseModel):
    """
    Response schema for a refresh request.

    Attributes
    ----------
    refreshed : bool
        False when skipped because a refresh was already running
    state : WalletStateResponse
        State after the request
    """
    refreshed: bool
    state: WalletStateResponse
