import pytest

from chain_reader.conversion import pad_address_topic
from chain_reader.entities import TransferDirection
from chain_reader.price import StaticPriceFeed
from chain_reader.rpc_models import RpcLog
from chain_reader.services import ChainReaderService
from chain_reader.transfers import TRANSFER_TOPIC, decode_transfer_log, involves_address, is_transfer_log
from core.exceptions import BadRequestException, RpcError

from tests.factories import OTHER, TOKEN, WALLET, make_transfer_log

WALLET_TOPIC = pad_address_topic(WALLET)


def make_reader(transport, logger, lookback=100) -> ChainReaderService:
    return ChainReaderService(
        transport=transport,
        logger=logger,
        token_contract_address=TOKEN,
        native_decimals=8,
        token_decimals=6,
        price_feed=StaticPriceFeed(),
        transfer_lookback_blocks=lookback
    )


def logs_by_direction(sent: list[dict] | Exception, received: list[dict] | Exception):
    """``eth_getLogs`` handler answering by which topic holds the wallet."""
    def handler(log_filter: dict):
        topics = log_filter["topics"]
        if len(topics) == 2 and topics[1] == WALLET_TOPIC:
            return sent
        if len(topics) == 3 and topics[1] is None and topics[2] == WALLET_TOPIC:
            return received
        raise AssertionError(f"unexpected filter {log_filter}")
    return handler


class TestTransferTopic:
    """Tests for Transfer log helpers."""

    def test_transfer_topic(self):
        assert TRANSFER_TOPIC == "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

    def test_decode_transfer_log(self):
        log = RpcLog.model_validate(make_transfer_log(42, WALLET, OTHER, 2_500_000, log_index=3))

        event = decode_transfer_log(log, TransferDirection.SENT, 6)

        assert event.block_number == 42
        assert event.log_index == 3
        assert event.from_address == WALLET
        assert event.to_address == OTHER
        assert event.amount == 2_500_000
        assert event.amount_formatted == "2.5"
        assert event.direction is TransferDirection.SENT

    def test_involves_address(self):
        log = RpcLog.model_validate(make_transfer_log(1, OTHER, WALLET, 1))
        assert is_transfer_log(log)
        assert involves_address(log, WALLET.upper().replace("0X", "0x"))
        assert not involves_address(log, "0x2222222222222222222222222222222222222222")

    def test_non_transfer_log(self):
        raw = make_transfer_log(1, OTHER, WALLET, 1)
        raw["topics"] = raw["topics"][:1]
        assert not involves_address(RpcLog.model_validate(raw), WALLET)


class TestTransferHistory:
    """Tests for sent and received Transfer log queries."""

    @pytest.mark.asyncio
    async def test_filters(self, make_transport, logger):
        transport = make_transport({
            "eth_blockNumber": hex(1000),
            "eth_getLogs": logs_by_direction([], []),
        })
        reader = make_reader(transport, logger)

        history = await reader.get_transfer_history(WALLET)

        assert history.from_block == 900
        assert history.latest_block == 1000
        filters = [params[0] for params in transport.params_of("eth_getLogs")]
        assert len(filters) == 2
        for log_filter in filters:
            assert log_filter["fromBlock"] == hex(900)
            assert log_filter["toBlock"] == "latest"
            assert log_filter["address"] == TOKEN
            assert log_filter["topics"][0] == TRANSFER_TOPIC

    @pytest.mark.asyncio
    async def test_window_starts_at_genesis(self, make_transport, logger):
        transport = make_transport({
            "eth_blockNumber": hex(40),
            "eth_getLogs": logs_by_direction([], []),
        })
        reader = make_reader(transport, logger)

        history = await reader.get_transfer_history(WALLET)

        assert history.from_block == 0
        assert all(params[0]["fromBlock"] == "0x0" for params in transport.params_of("eth_getLogs"))

    @pytest.mark.asyncio
    async def test_sent_and_received_are_merged_newest_first(self, make_transport, logger):
        sent = [make_transfer_log(n, WALLET, OTHER, n) for n in (901, 950, 990)]
        received = [make_transfer_log(n, OTHER, WALLET, n) for n in (910, 960, 999, 905)]
        transport = make_transport({
            "eth_blockNumber": hex(1000),
            "eth_getLogs": logs_by_direction(sent, received),
        })
        reader = make_reader(transport, logger)

        history = await reader.get_transfer_history(WALLET, limit=5)

        assert [e.block_number for e in history.events] == [999, 990, 960, 950, 910]
        directions = {e.block_number: e.direction for e in history.events}
        assert directions[999] is TransferDirection.RECEIVED
        assert directions[990] is TransferDirection.SENT
        assert history.warnings == []

    @pytest.mark.asyncio
    async def test_same_block_keeps_sent_before_received(self, make_transport, logger):
        sent = [make_transfer_log(950, WALLET, OTHER, 1, log_index=0)]
        received = [make_transfer_log(950, OTHER, WALLET, 2, log_index=1)]
        transport = make_transport({
            "eth_blockNumber": hex(1000),
            "eth_getLogs": logs_by_direction(sent, received),
        })
        reader = make_reader(transport, logger)

        history = await reader.get_transfer_history(WALLET)

        assert [e.direction for e in history.events] == [TransferDirection.SENT, TransferDirection.RECEIVED]

    @pytest.mark.asyncio
    async def test_failed_direction_is_a_warning(self, make_transport, logger):
        received = [make_transfer_log(970, OTHER, WALLET, 7)]
        transport = make_transport({
            "eth_blockNumber": hex(1000),
            "eth_getLogs": logs_by_direction(RpcError(-32005, "query returned more than 10000 results"), received),
        })
        reader = make_reader(transport, logger)

        history = await reader.get_transfer_history(WALLET)

        assert [e.block_number for e in history.events] == [970]
        assert [w.source for w in history.warnings] == ["logs.sent"]

    @pytest.mark.asyncio
    async def test_removed_and_malformed_logs_are_skipped(self, make_transport, logger):
        short = make_transfer_log(980, OTHER, WALLET, 1)
        short["topics"] = short["topics"][:2]
        bad_data = make_transfer_log(985, OTHER, WALLET, 1)
        bad_data["data"] = "0xnothex"
        received = [
            make_transfer_log(990, OTHER, WALLET, 1, removed=True),
            short,
            bad_data,
            make_transfer_log(975, OTHER, WALLET, 5),
        ]
        transport = make_transport({
            "eth_blockNumber": hex(1000),
            "eth_getLogs": logs_by_direction([], received),
        })
        reader = make_reader(transport, logger)

        history = await reader.get_transfer_history(WALLET)

        assert [e.block_number for e in history.events] == [975]
        assert [w.source for w in history.warnings] == ["logs.received"]

    @pytest.mark.asyncio
    async def test_rejects_non_positive_limit(self, make_transport, logger):
        reader = make_reader(make_transport({"eth_blockNumber": hex(1)}), logger)

        with pytest.raises(BadRequestException):
            await reader.get_transfer_history(WALLET, limit=0)
