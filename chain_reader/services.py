import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from chain_reader.conversion import (
    encode_balance_of,
    hex_to_int,
    int_to_hex,
    is_empty_code,
    normalize_address,
    pad_address_topic,
    scale_to_decimal,
    to_decimal,
)
from chain_reader.entities import (
    BalanceSnapshot,
    CollectedTransaction,
    InvolvedBalance,
    InvolvedBalances,
    PartialDataWarning,
    TransactionHistory,
    TransferDirection,
    TransferHistory,
    TransferLogEvent,
)
from chain_reader.price import PriceFeed
from chain_reader.rpc import JsonRpcTransport
from chain_reader.rpc_models import LogFilter, RpcBlock, RpcLog, RpcReceipt, RpcTransaction
from chain_reader.transfers import TRANSFER_TOPIC, decode_transfer_log
from core.exceptions import BadRequestException, BaseCustomException, FormatError
from core.redis.providers import CacheService

MIN_BLOCKS_TO_SCAN = 20
BLOCKS_PER_TRANSACTION = 5


class ChainReaderService:
    """
    Service reading balances and transfer history from an EVM node.

    Parameters
    ----------
    transport : JsonRpcTransport
        JSON-RPC transport
    logger : logging.Logger
        Logger instance
    token_contract_address : str
        ERC20-style token contract
    native_decimals : int
        Decimal places of the native token
    token_decimals : int
        Decimal places of the token contract
    price_feed : PriceFeed
        USD price source
    cache_service : CacheService | None
        Block body cache, disabled when None
    priced_balance : str
        ``native`` or ``token``: which balance the USD price multiplies
    transfer_lookback_blocks : int
        Window of Transfer log queries
    block_cache_ttl : int
        TTL of cached block bodies
    """

    def __init__(
        self,
        transport: JsonRpcTransport,
        logger: logging.Logger,
        token_contract_address: str,
        native_decimals: int,
        token_decimals: int,
        price_feed: PriceFeed,
        cache_service: CacheService | None = None,
        priced_balance: str = "native",
        transfer_lookback_blocks: int = 100,
        block_cache_ttl: int = 300
    ):
        self.transport = transport
        self.logger = logger
        self.token_contract_address = normalize_address(token_contract_address)
        self.native_decimals = native_decimals
        self.token_decimals = token_decimals
        self.price_feed = price_feed
        self.cache = cache_service
        self.priced_balance = priced_balance
        self.transfer_lookback_blocks = transfer_lookback_blocks
        self.block_cache_ttl = block_cache_ttl

    def _warn(self, warnings: list[PartialDataWarning], source: str, error: Any) -> None:
        self.logger.warning(f"Partial data ({source}): {error}")
        warnings.append(PartialDataWarning(source=source, message=str(error)))

    async def get_latest_block_number(self) -> int:
        return hex_to_int(await self.transport.call("eth_blockNumber", []))

    async def get_native_balance(self, address: str) -> int:
        result = await self.transport.call("eth_getBalance", [normalize_address(address), "latest"])
        return hex_to_int(result)

    # Balance

    async def get_balance_snapshot(self, wallet_address: str) -> BalanceSnapshot:
        """
        Get native and token balances of a wallet with their USD value.

        The native balance and the token probe run concurrently. Any failure
        on the token side leaves the token balance at zero with a warning;
        a native balance failure propagates.

        Parameters
        ----------
        wallet_address : str
            Wallet address

        Returns
        -------
        BalanceSnapshot
            Balance snapshot
        """
        address = normalize_address(wallet_address)
        warnings: list[PartialDataWarning] = []

        native_result, token_result = await asyncio.gather(
            self.get_native_balance(address),
            self._get_token_balance(address, warnings),
            return_exceptions=True
        )
        if isinstance(native_result, BaseException):
            raise native_result
        if isinstance(token_result, BaseException):
            raise token_result

        native_raw: int = native_result
        token_raw: int = token_result

        price = await self.price_feed.get_usd_price()
        if self.priced_balance == "token":
            priced = to_decimal(token_raw, self.token_decimals)
        else:
            priced = to_decimal(native_raw, self.native_decimals)
        usd_value = priced * price if price is not None else Decimal(0)

        self.logger.info(
            f"Balance of {address}: native={native_raw} token={token_raw} "
            f"price={'n/a' if price is None else price}"
        )

        return BalanceSnapshot(
            wallet_address=address,
            native_balance_raw=native_raw,
            native_balance=scale_to_decimal(native_raw, self.native_decimals),
            token_balance_raw=token_raw,
            token_balance=scale_to_decimal(token_raw, self.token_decimals),
            usd_value=usd_value,
            price_available=price is not None,
            as_of=datetime.now(timezone.utc),
            warnings=warnings
        )

    async def _get_token_balance(self, address: str, warnings: list[PartialDataWarning]) -> int:
        try:
            code = await self.transport.call("eth_getCode", [self.token_contract_address, "latest"])
        except BaseCustomException as e:
            self._warn(warnings, "token_contract", e)
            return 0

        if is_empty_code(code):
            self._warn(warnings, "token_contract", f"No contract code at {self.token_contract_address}")
            return 0

        call = {"to": self.token_contract_address, "data": encode_balance_of(address)}
        try:
            return hex_to_int(await self.transport.call("eth_call", [call, "latest"]))
        except BaseCustomException as e:
            self._warn(warnings, "token_balance", e)
            return 0

    # Strategy A: block scan

    async def scan_recent_transactions(self, count: int = 1) -> TransactionHistory:
        """
        Collect the most recent transactions by walking blocks backward.

        Blocks are visited from the head down, at most ``max(20, count * 5)``
        of them, and each block's transactions from last to first. The
        in-block order is how the node lays transactions out, not a protocol
        guarantee.

        Parameters
        ----------
        count : int
            Number of transactions wanted

        Returns
        -------
        TransactionHistory
            Up to ``count`` transactions, newest first
        """
        if count < 1:
            raise BadRequestException("Transaction count must be positive")

        latest = await self.get_latest_block_number()
        budget = max(MIN_BLOCKS_TO_SCAN, count * BLOCKS_PER_TRANSACTION)
        self.logger.info(f"Scanning up to {budget} blocks from {latest} for {count} transaction(s)")

        found: list[tuple[RpcTransaction, RpcBlock]] = []
        seen: set[str] = set()
        block_number = latest
        scanned = 0

        while scanned < budget and len(found) < count and block_number >= 0:
            block = await self._get_block(block_number, latest)
            scanned += 1
            if block is not None:
                for tx in reversed(block.transactions):
                    if len(found) >= count:
                        break
                    if tx.hash in seen:
                        continue
                    seen.add(tx.hash)
                    found.append((tx, block))
            block_number -= 1

        warnings: list[PartialDataWarning] = []
        created = await asyncio.gather(*(
            self._get_created_contract(tx.hash, warnings) if tx.to is None else _none()
            for tx, _ in found
        ))

        transactions = [
            self._collect(tx, block, contract)
            for (tx, block), contract in zip(found, created)
        ]
        if not transactions:
            self.logger.info(f"No transactions found in the last {scanned} scanned blocks")

        return TransactionHistory(
            transactions=transactions,
            latest_block=latest,
            blocks_scanned=scanned,
            warnings=warnings
        )

    async def _get_block(self, number: int, latest: int) -> RpcBlock | None:
        # Only blocks below the head are cached; the head may still change.
        cache_key = f"block:{number}"
        cacheable = self.cache is not None and number < latest

        raw = await self.cache.get(cache_key) if cacheable else None
        if raw is None:
            raw = await self.transport.call("eth_getBlockByNumber", [int_to_hex(number), True])
            if raw is None:
                return None
            if cacheable:
                await self.cache.set(cache_key, raw, ttl=self.block_cache_ttl)

        try:
            return RpcBlock.model_validate(raw)
        except ValidationError as e:
            raise FormatError(f"Malformed block {number}: {e}") from e

    async def get_transaction_receipt(self, tx_hash: str) -> RpcReceipt | None:
        raw = await self.transport.call("eth_getTransactionReceipt", [tx_hash])
        if raw is None:
            return None
        try:
            return RpcReceipt.model_validate(raw)
        except ValidationError as e:
            raise FormatError(f"Malformed receipt for {tx_hash}: {e}") from e

    async def _get_created_contract(
        self,
        tx_hash: str,
        warnings: list[PartialDataWarning]
    ) -> str | None:
        try:
            receipt = await self.get_transaction_receipt(tx_hash)
        except BaseCustomException as e:
            self._warn(warnings, f"receipt:{tx_hash}", e)
            return None

        if receipt is None or not receipt.contract_address:
            self.logger.info(f"No created contract address in receipt for {tx_hash}")
            return None
        return normalize_address(receipt.contract_address)

    def _collect(
        self,
        tx: RpcTransaction,
        block: RpcBlock,
        created_contract: str | None
    ) -> CollectedTransaction:
        return CollectedTransaction(
            hash=tx.hash,
            from_address=normalize_address(tx.from_address),
            to_address=normalize_address(tx.to) if tx.to else None,
            value=tx.value,
            value_formatted=scale_to_decimal(tx.value, self.native_decimals),
            gas_price=tx.gas_price,
            gas=tx.gas,
            input=tx.input,
            transaction_index=tx.transaction_index,
            block_number=block.number,
            block_timestamp=block.timestamp,
            created_contract_address=created_contract
        )

    # Strategy B: Transfer log filter

    async def get_transfer_history(self, wallet_address: str, limit: int = 5) -> TransferHistory:
        """
        Get recent token transfers of a wallet from Transfer logs.

        Sent and received transfers are queried concurrently over the last
        ``transfer_lookback_blocks`` blocks. A failed direction degrades to
        an empty list with a warning. Native transfers are not visible here.

        Parameters
        ----------
        wallet_address : str
            Wallet address
        limit : int
            Maximum number of transfers returned

        Returns
        -------
        TransferHistory
            Transfers sorted by block number, newest first
        """
        if limit < 1:
            raise BadRequestException("Transfer limit must be positive")

        address = normalize_address(wallet_address)
        latest = await self.get_latest_block_number()
        from_block = max(0, latest - self.transfer_lookback_blocks)
        topic = pad_address_topic(address)

        sent_filter = LogFilter(
            from_block=int_to_hex(from_block),
            address=self.token_contract_address,
            topics=[TRANSFER_TOPIC, topic]
        )
        received_filter = LogFilter(
            from_block=int_to_hex(from_block),
            address=self.token_contract_address,
            topics=[TRANSFER_TOPIC, None, topic]
        )

        warnings: list[PartialDataWarning] = []
        sent, received = await asyncio.gather(
            self._get_transfer_logs(sent_filter, TransferDirection.SENT, warnings),
            self._get_transfer_logs(received_filter, TransferDirection.RECEIVED, warnings)
        )

        events = sent + received
        events.sort(key=lambda event: event.block_number, reverse=True)
        self.logger.info(
            f"Transfers of {address} since block {from_block}: "
            f"{len(sent)} sent, {len(received)} received"
        )

        return TransferHistory(
            events=events[:limit],
            from_block=from_block,
            latest_block=latest,
            warnings=warnings
        )

    async def _get_transfer_logs(
        self,
        log_filter: LogFilter,
        direction: TransferDirection,
        warnings: list[PartialDataWarning]
    ) -> list[TransferLogEvent]:
        source = f"logs.{direction.value}"
        try:
            raw_logs = await self.transport.call("eth_getLogs", [log_filter.to_params()])
        except BaseCustomException as e:
            self._warn(warnings, source, e)
            return []

        events = []
        for raw in raw_logs or []:
            try:
                log = RpcLog.model_validate(raw)
                if len(log.topics) < 3 or log.removed:
                    continue
                events.append(decode_transfer_log(log, direction, self.token_decimals))
            except (ValidationError, FormatError) as e:
                self._warn(warnings, source, f"Skipping malformed log: {e}")
        return events

    # Involved wallets

    async def get_involved_balances(self, count: int = 1) -> InvolvedBalances:
        """
        Get native balances of every address touched by recent transactions.

        Parameters
        ----------
        count : int
            Number of recent transactions to inspect

        Returns
        -------
        InvolvedBalances
            Balances in first-seen order; failed lookups become warnings
        """
        history = await self.scan_recent_transactions(count)
        addresses: list[str] = []
        for tx in history.transactions:
            for address in (tx.from_address, tx.to_address, tx.created_contract_address):
                if address and address not in addresses:
                    addresses.append(address)

        warnings = list(history.warnings)
        results = await asyncio.gather(
            *(self.get_native_balance(address) for address in addresses),
            return_exceptions=True
        )

        balances = []
        for address, result in zip(addresses, results):
            if isinstance(result, BaseCustomException):
                self._warn(warnings, f"balance:{address}", result)
                continue
            if isinstance(result, BaseException):
                raise result
            balances.append(InvolvedBalance(
                address=address,
                balance_raw=result,
                balance=scale_to_decimal(result, self.native_decimals)
            ))

        return InvolvedBalances(
            balances=balances,
            transactions=history.transactions,
            warnings=warnings
        )


async def _none() -> None:
    return None
