import asyncio
import logging
from collections import OrderedDict

from chain_reader.conversion import normalize_address
from chain_reader.services import ChainReaderService
from chain_reader.session import WalletSession
from chain_reader.subscription import LogSubscriptionListener
from core.environment.config import Settings
from core.exceptions import SubscriptionError


class WalletSessionRegistry:
    """
    One ``WalletSession`` per wallet address, at most ``max_sessions``.

    Sessions get their background triggers on creation: the periodic
    refresh when ``refresh_interval`` is positive and the log subscription
    when ``ws_url`` is configured. When the registry is full the least
    recently used session is evicted and its triggers are cancelled.

    Parameters
    ----------
    reader : ChainReaderService
        Chain reader shared by all sessions
    settings : Settings
        Application settings
    logger : logging.Logger
        Logger instance
    """

    def __init__(self, reader: ChainReaderService, settings: Settings, logger: logging.Logger):
        self.reader = reader
        self.settings = settings
        self.logger = logger
        self.max_sessions = settings.max_sessions
        self._sessions: OrderedDict[str, WalletSession] = OrderedDict()
        self._tasks: dict[str, list[asyncio.Task]] = {}

    def __contains__(self, wallet_address: str) -> bool:
        return normalize_address(wallet_address) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def task_count(self) -> int:
        return sum(len(tasks) for tasks in self._tasks.values())

    def get(self, wallet_address: str) -> WalletSession:
        """
        Get or create the session of a wallet.

        Parameters
        ----------
        wallet_address : str
            Wallet address, any case

        Returns
        -------
        WalletSession
            Session of the wallet
        """
        address = normalize_address(wallet_address)
        session = self._sessions.get(address)
        if session is not None:
            self._sessions.move_to_end(address)
            return session

        while len(self._sessions) >= self.max_sessions:
            self._evict_oldest()

        session = WalletSession(
            wallet_address=address,
            reader=self.reader,
            logger=self.logger,
            history_strategy=self.settings.history_strategy,
            transfer_limit=self.settings.transfer_limit
        )
        self._sessions[address] = session
        self._start_triggers(session)
        return session

    def _evict_oldest(self) -> None:
        address, _ = self._sessions.popitem(last=False)
        tasks = self._tasks.pop(address, [])
        for task in tasks:
            task.cancel()
        self.logger.info(f"Evicted wallet session {address} ({len(tasks)} background task(s) cancelled)")

    def _start_triggers(self, session: WalletSession) -> None:
        if self.settings.refresh_interval > 0:
            self._spawn(session.wallet_address, session.run_periodic_refresh(self.settings.refresh_interval))

        if self.settings.ws_url:
            listener = LogSubscriptionListener(
                ws_url=self.settings.ws_url,
                contract_address=self.settings.token_contract_address,
                session=session,
                logger=self.logger,
                retry_count=self.settings.ws_retry_count,
                retry_sleep=self.settings.ws_retry_sleep,
                retry_multiplier=self.settings.ws_retry_multiplier,
                retry_max_sleep=self.settings.ws_retry_max_sleep
            )
            self._spawn(session.wallet_address, listener.run())

    def _spawn(self, address: str, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        task.add_done_callback(lambda done: self._on_task_done(address, done))
        self._tasks.setdefault(address, []).append(task)

    def _on_task_done(self, address: str, task: asyncio.Task) -> None:
        tasks = self._tasks.get(address)
        if tasks is not None and task in tasks:
            tasks.remove(task)
            if not tasks:
                del self._tasks[address]
        if task.cancelled():
            return
        error = task.exception()
        if isinstance(error, SubscriptionError):
            self.logger.error(f"Log subscription of {address} stopped: {error.message}")
        elif error is not None:
            self.logger.error(f"Background task of {address} failed: {error!r}")

    async def close(self) -> None:
        tasks = [task for session_tasks in self._tasks.values() for task in session_tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
