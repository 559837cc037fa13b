import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from chain_reader.conversion import normalize_address
from chain_reader.entities import (
    BalanceSnapshot,
    CollectedTransaction,
    PartialDataWarning,
    TransferLogEvent,
)
from chain_reader.services import ChainReaderService
from core.exceptions import BaseCustomException


class WalletState(BaseModel):
    """
    Immutable view of a wallet; sessions replace it as a whole.

    Attributes
    ----------
    wallet_address : str
        Wallet address (lower case)
    balance : BalanceSnapshot | None
        Latest balance, None before the first refresh
    transactions : list[CollectedTransaction]
        Recent native transactions involving the wallet (scan strategy)
    transfers : list[TransferLogEvent]
        Recent token transfers of the wallet
    warnings : list[PartialDataWarning]
        Degraded parts of the last refresh
    refreshed_at : datetime | None
        Time of the last successful refresh
    error : str | None
        Message of the last failed refresh, cleared on success
    """
    wallet_address: str
    balance: BalanceSnapshot | None = None
    transactions: list[CollectedTransaction] = Field(default_factory=list)
    transfers: list[TransferLogEvent] = Field(default_factory=list)
    warnings: list[PartialDataWarning] = Field(default_factory=list)
    refreshed_at: datetime | None = None
    error: str | None = None

    model_config = ConfigDict(frozen=True)


StateObserver = Callable[[WalletState], Awaitable[None]]


class WalletSession:
    """
    Owns the refreshed state of one wallet.

    Timer ticks and subscription events both go through ``refresh``; a
    refresh requested while another one is running is skipped.

    Parameters
    ----------
    wallet_address : str
        Tracked wallet
    reader : ChainReaderService
        Chain reader
    logger : logging.Logger
        Logger instance
    history_strategy : str
        ``logs`` for Transfer logs only, ``scan`` to also scan blocks
    transaction_count : int
        Transactions requested from the block scan
    transfer_limit : int
        Transfers kept from the log query
    """

    def __init__(
        self,
        wallet_address: str,
        reader: ChainReaderService,
        logger: logging.Logger,
        history_strategy: str = "logs",
        transaction_count: int = 5,
        transfer_limit: int = 5
    ):
        self.wallet_address = normalize_address(wallet_address)
        self.reader = reader
        self.logger = logger
        self.history_strategy = history_strategy
        self.transaction_count = transaction_count
        self.transfer_limit = transfer_limit

        self._state = WalletState(wallet_address=self.wallet_address)
        self._observers: list[StateObserver] = []
        self._refreshing = False

    @property
    def state(self) -> WalletState:
        return self._state

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """
        Register an observer called with every new state.

        Returns
        -------
        Callable[[], None]
            Function removing the observer
        """
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: StateObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    async def _publish(self, state: WalletState) -> None:
        self._state = state
        for observer in list(self._observers):
            try:
                await observer(state)
            except Exception:
                self.logger.exception(f"Wallet observer failed for {self.wallet_address}")

    async def refresh(self) -> bool:
        """
        Reload balance and history and replace the state.

        Returns
        -------
        bool
            False if skipped because a refresh was already running

        Raises
        ------
        BaseCustomException
            Fatal chain errors, after recording them in ``state.error``
        """
        if self._refreshing:
            self.logger.debug(f"Refresh of {self.wallet_address} already running, skipping")
            return False

        self._refreshing = True
        try:
            self.logger.info(f"Refreshing wallet {self.wallet_address}")
            try:
                state = await self._load()
            except BaseCustomException as e:
                self.logger.error(f"Refresh of {self.wallet_address} failed: {e.message}")
                await self._publish(self._state.model_copy(update={"error": e.message}))
                raise
            await self._publish(state)
            return True
        finally:
            self._refreshing = False

    async def _load(self) -> WalletState:
        balance_task = self.reader.get_balance_snapshot(self.wallet_address)
        transfers_task = self.reader.get_transfer_history(self.wallet_address, self.transfer_limit)

        if self.history_strategy == "scan":
            balance, transfers, history = await asyncio.gather(
                balance_task,
                transfers_task,
                self.reader.scan_recent_transactions(self.transaction_count)
            )
            transactions = [tx for tx in history.transactions if self._involves_wallet(tx)]
            history_warnings = history.warnings
        else:
            balance, transfers = await asyncio.gather(balance_task, transfers_task)
            transactions = []
            history_warnings = []

        return WalletState(
            wallet_address=self.wallet_address,
            balance=balance,
            transactions=transactions,
            transfers=transfers.events,
            warnings=[*balance.warnings, *transfers.warnings, *history_warnings],
            refreshed_at=datetime.now(timezone.utc)
        )

    def _involves_wallet(self, tx: CollectedTransaction) -> bool:
        return self.wallet_address in (tx.from_address, tx.to_address, tx.created_contract_address)

    async def run_periodic_refresh(self, interval: float) -> None:
        """Refresh every ``interval`` seconds until cancelled."""
        while True:
            try:
                await self.refresh()
            except BaseCustomException:
                self.logger.warning(f"Periodic refresh of {self.wallet_address} failed, retrying in {interval}s")
            await asyncio.sleep(interval)
