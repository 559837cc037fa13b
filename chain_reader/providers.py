from dishka import Provider, Scope, provide, FromComponent
from typing import Annotated, AsyncIterable
import logging

from chain_reader.price import PriceFeed, StaticPriceFeed
from chain_reader.registry import WalletSessionRegistry
from chain_reader.rpc import RPCTransport
from chain_reader.services import ChainReaderService
from chain_reader.usecases import (
    GetBalanceSnapshotUseCase,
    GetInvolvedBalancesUseCase,
    GetRecentTransactionsUseCase,
    GetTransferHistoryUseCase,
    GetWalletStateUseCase,
    RefreshWalletUseCase,
)
from core.environment.config import Settings
from core.redis.providers import CacheService


class ChainReaderProvider(Provider):
    """
    Provider for chain reading dependencies.
    """

    component = "chain"

    @provide(scope=Scope.APP)
    async def get_rpc_transport(
        self,
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> AsyncIterable[RPCTransport]:
        """
        Provide the JSON-RPC transport, closing its HTTP session on shutdown.

        Parameters
        ----------
        settings : Settings
            Application settings
        logger : logging.Logger
            Logger instance

        Yields
        ------
        RPCTransport
            JSON-RPC transport
        """
        transport = RPCTransport(settings.rpc_url, settings.rpc_timeout, logger)
        try:
            yield transport
        finally:
            await transport.close()

    @provide(scope=Scope.APP)
    def get_price_feed(
        self,
        settings: Annotated[Settings, FromComponent("environment")]
    ) -> PriceFeed:
        return StaticPriceFeed(settings.usd_price)

    @provide(scope=Scope.APP)
    def get_chain_reader_service(
        self,
        transport: Annotated[RPCTransport, FromComponent("chain")],
        price_feed: Annotated[PriceFeed, FromComponent("chain")],
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")],
        cache_service: Annotated[CacheService, FromComponent("cache")]
    ) -> ChainReaderService:
        """
        Provide chain reader service.

        Parameters
        ----------
        transport : RPCTransport
            JSON-RPC transport
        price_feed : PriceFeed
            USD price source
        settings : Settings
            Application settings
        logger : logging.Logger
            Logger instance
        cache_service : CacheService
            Cache for block bodies

        Returns
        -------
        ChainReaderService
            Chain reader service instance
        """
        return ChainReaderService(
            transport=transport,
            logger=logger,
            token_contract_address=settings.token_contract_address,
            native_decimals=settings.native_decimals,
            token_decimals=settings.token_decimals,
            price_feed=price_feed,
            cache_service=cache_service,
            priced_balance=settings.priced_balance,
            transfer_lookback_blocks=settings.transfer_lookback_blocks,
            block_cache_ttl=settings.block_cache_ttl
        )

    @provide(scope=Scope.APP)
    async def get_session_registry(
        self,
        chain_reader: Annotated[ChainReaderService, FromComponent("chain")],
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> AsyncIterable[WalletSessionRegistry]:
        """
        Provide the wallet session registry, stopping background tasks on shutdown.

        Yields
        ------
        WalletSessionRegistry
            Wallet session registry
        """
        registry = WalletSessionRegistry(chain_reader, settings, logger)
        try:
            yield registry
        finally:
            await registry.close()

    @provide(scope=Scope.REQUEST)
    def get_balance_snapshot_use_case(
        self,
        chain_reader: Annotated[ChainReaderService, FromComponent("chain")]
    ) -> GetBalanceSnapshotUseCase:
        return GetBalanceSnapshotUseCase(chain_reader)

    @provide(scope=Scope.REQUEST)
    def get_recent_transactions_use_case(
        self,
        chain_reader: Annotated[ChainReaderService, FromComponent("chain")]
    ) -> GetRecentTransactionsUseCase:
        return GetRecentTransactionsUseCase(chain_reader)

    @provide(scope=Scope.REQUEST)
    def get_transfer_history_use_case(
        self,
        chain_reader: Annotated[ChainReaderService, FromComponent("chain")]
    ) -> GetTransferHistoryUseCase:
        return GetTransferHistoryUseCase(chain_reader)

    @provide(scope=Scope.REQUEST)
    def get_involved_balances_use_case(
        self,
        chain_reader: Annotated[ChainReaderService, FromComponent("chain")]
    ) -> GetInvolvedBalancesUseCase:
        return GetInvolvedBalancesUseCase(chain_reader)

    @provide(scope=Scope.REQUEST)
    def get_refresh_wallet_use_case(
        self,
        registry: Annotated[WalletSessionRegistry, FromComponent("chain")]
    ) -> RefreshWalletUseCase:
        return RefreshWalletUseCase(registry)

    @provide(scope=Scope.REQUEST)
    def get_wallet_state_use_case(
        self,
        registry: Annotated[WalletSessionRegistry, FromComponent("chain")]
    ) -> GetWalletStateUseCase:
        return GetWalletStateUseCase(registry)
