from chain_reader.services import ChainReaderService
from chain_reader.registry import WalletSessionRegistry
from chain_reader.schemas import (
    BalanceResponse,
    InvolvedBalancesResponse,
    RefreshResponse,
    TransactionsResponse,
    TransfersResponse,
    WalletStateResponse,
)


class GetBalanceSnapshotUseCase:
    """
    Use case for getting wallet balances at the latest block.

    Parameters
    ----------
    chain_reader : ChainReaderService
        Chain reader service
    """

    def __init__(self, chain_reader: ChainReaderService):
        self.chain_reader = chain_reader

    async def __call__(self, wallet_address: str) -> BalanceResponse:
        """
        Execute use case.

        Parameters
        ----------
        wallet_address : str
            Wallet address

        Returns
        -------
        BalanceResponse
            Balance response
        """
        snapshot = await self.chain_reader.get_balance_snapshot(wallet_address)
        return BalanceResponse.from_entity(snapshot)


class GetRecentTransactionsUseCase:
    """
    Use case for scanning recent blocks for transactions.

    Parameters
    ----------
    chain_reader : ChainReaderService
        Chain reader service
    """

    def __init__(self, chain_reader: ChainReaderService):
        self.chain_reader = chain_reader

    async def __call__(self, count: int) -> TransactionsResponse:
        history = await self.chain_reader.scan_recent_transactions(count)
        return TransactionsResponse.from_entity(history)


class GetTransferHistoryUseCase:
    """
    Use case for getting token transfers of a wallet from Transfer logs.

    Parameters
    ----------
    chain_reader : ChainReaderService
        Chain reader service
    """

    def __init__(self, chain_reader: ChainReaderService):
        self.chain_reader = chain_reader

    async def __call__(self, wallet_address: str, limit: int) -> TransfersResponse:
        history = await self.chain_reader.get_transfer_history(wallet_address, limit)
        return TransfersResponse.from_entity(wallet_address, history)


class GetInvolvedBalancesUseCase:
    """
    Use case for getting balances of addresses in recent transactions.

    Parameters
    ----------
    chain_reader : ChainReaderService
        Chain reader service
    """

    def __init__(self, chain_reader: ChainReaderService):
        self.chain_reader = chain_reader

    async def __call__(self, count: int) -> InvolvedBalancesResponse:
        involved = await self.chain_reader.get_involved_balances(count)
        return InvolvedBalancesResponse.from_entity(involved)


class RefreshWalletUseCase:
    """
    Use case for refreshing a wallet session.

    A refresh requested while another one runs returns ``refreshed=False``
    with the current state.

    Parameters
    ----------
    registry : WalletSessionRegistry
        Wallet session registry
    """

    def __init__(self, registry: WalletSessionRegistry):
        self.registry = registry

    async def __call__(self, wallet_address: str) -> RefreshResponse:
        session = self.registry.get(wallet_address)
        refreshed = await session.refresh()
        return RefreshResponse(
            refreshed=refreshed,
            state=WalletStateResponse.from_entity(session.state, session.is_refreshing)
        )


class GetWalletStateUseCase:
    """
    Use case for reading the current state of a wallet session.

    Parameters
    ----------
    registry : WalletSessionRegistry
        Wallet session registry
    """

    def __init__(self, registry: WalletSessionRegistry):
        self.registry = registry

    async def __call__(self, wallet_address: str) -> WalletStateResponse:
        session = self.registry.get(wallet_address)
        return WalletStateResponse.from_entity(session.state, session.is_refreshing)
