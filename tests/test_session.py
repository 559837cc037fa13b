import asyncio
from decimal import Decimal

import pytest

from chain_reader.price import StaticPriceFeed
from chain_reader.services import ChainReaderService
from chain_reader.session import WalletSession, WalletState
from core.exceptions import TransportError

from tests.factories import OTHER, TOKEN, WALLET, make_chain, make_transfer_log, make_tx


def make_session(transport, logger, history_strategy="logs") -> WalletSession:
    reader = ChainReaderService(
        transport=transport,
        logger=logger,
        token_contract_address=TOKEN,
        native_decimals=8,
        token_decimals=18,
        price_feed=StaticPriceFeed(Decimal("2"))
    )
    return WalletSession(WALLET, reader, logger, history_strategy=history_strategy, transaction_count=5)


def wallet_handlers(balance: int = 10 ** 8) -> dict:
    handlers = make_chain(200, {
        199: [make_tx("0xin", 0, sender=OTHER, to=WALLET)],
        198: [make_tx("0xunrelated", 0, sender=OTHER, to=OTHER)],
    })
    handlers.update({
        "eth_getBalance": hex(balance),
        "eth_getCode": "0x",
        "eth_getLogs": lambda log_filter: (
            [make_transfer_log(150, OTHER, WALLET, 10 ** 18)] if len(log_filter["topics"]) == 3 else []
        ),
    })
    return handlers


class TestWalletSession:
    """Tests for wallet state refreshes."""

    @pytest.mark.asyncio
    async def test_initial_state(self, make_transport, logger):
        session = make_session(make_transport(wallet_handlers()), logger)

        assert session.state == WalletState(wallet_address=WALLET)
        assert session.state.balance is None
        assert not session.is_refreshing

    @pytest.mark.asyncio
    async def test_refresh_replaces_state(self, make_transport, logger):
        session = make_session(make_transport(wallet_handlers()), logger)
        before = session.state

        assert await session.refresh() is True

        state = session.state
        assert state is not before
        assert state.balance.native_balance == "1.0"
        assert state.balance.usd_value == Decimal("2.0")
        assert [e.block_number for e in state.transfers] == [150]
        assert state.transactions == []
        assert [w.source for w in state.warnings] == ["token_contract"]
        assert state.refreshed_at is not None
        assert state.error is None

    @pytest.mark.asyncio
    async def test_scan_strategy_keeps_wallet_transactions(self, make_transport, logger):
        session = make_session(make_transport(wallet_handlers()), logger, history_strategy="scan")

        await session.refresh()

        assert [tx.hash for tx in session.state.transactions] == ["0xin"]

    @pytest.mark.asyncio
    async def test_concurrent_refresh_is_skipped(self, make_transport, logger):
        release = asyncio.Event()
        handlers = wallet_handlers()

        async def slow_balance(address, block):
            await release.wait()
            return hex(10 ** 8)

        handlers["eth_getBalance"] = slow_balance
        transport = make_transport(handlers)
        session = make_session(transport, logger)

        first = asyncio.create_task(session.refresh())
        await asyncio.sleep(0)
        assert session.is_refreshing

        assert await session.refresh() is False

        release.set()
        assert await first is True
        assert transport.count("eth_getBalance") == 1
        assert not session.is_refreshing

    @pytest.mark.asyncio
    async def test_observers_receive_new_state(self, make_transport, logger):
        session = make_session(make_transport(wallet_handlers()), logger)
        received: list[WalletState] = []

        async def observer(state: WalletState) -> None:
            received.append(state)

        unsubscribe = session.subscribe(observer)
        await session.refresh()
        unsubscribe()
        await session.refresh()

        assert len(received) == 1
        assert received[0].balance is not None

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_break_refresh(self, make_transport, logger):
        session = make_session(make_transport(wallet_handlers()), logger)
        received: list[WalletState] = []

        async def broken(state: WalletState) -> None:
            raise RuntimeError("observer bug")

        async def observer(state: WalletState) -> None:
            received.append(state)

        session.subscribe(broken)
        session.subscribe(observer)

        assert await session.refresh() is True
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_data(self, make_transport, logger):
        handlers = wallet_handlers()
        transport = make_transport(handlers)
        session = make_session(transport, logger)
        await session.refresh()
        previous = session.state

        handlers_failing = dict(handlers)
        handlers_failing["eth_getBalance"] = TransportError(503, "unavailable")
        transport.handlers = handlers_failing

        with pytest.raises(TransportError):
            await session.refresh()

        state = session.state
        assert state.balance == previous.balance
        assert state.transfers == previous.transfers
        assert state.refreshed_at == previous.refreshed_at
        assert state.error is not None and "error.rpc.transport" in state.error
        assert not session.is_refreshing

        transport.handlers = handlers
        await session.refresh()
        assert session.state.error is None
