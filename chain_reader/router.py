from fastapi import APIRouter
from dishka.integrations.fastapi import inject
from dishka import FromComponent
from typing import Annotated
from chain_reader.schemas import (
    WalletRequest,
    GetTransfersRequest,
    GetTransactionsRequest,
    BalanceResponse,
    TransactionsResponse,
    TransfersResponse,
    InvolvedBalancesResponse,
    RefreshResponse,
    WalletStateResponse
)
from chain_reader.usecases import (
    GetBalanceSnapshotUseCase,
    GetRecentTransactionsUseCase,
    GetTransferHistoryUseCase,
    GetInvolvedBalancesUseCase,
    RefreshWalletUseCase,
    GetWalletStateUseCase
)

router = APIRouter(
    prefix="/api/wallet",
    tags=["Wallet"]
)


@router.post("/balance", response_model=BalanceResponse)
@inject
async def get_balance(
    request: WalletRequest,
    use_case: Annotated[
        GetBalanceSnapshotUseCase, FromComponent("chain")
    ]
) -> BalanceResponse:
    """
    Get native and token balance of a wallet at the latest block.

    Parameters
    ----------
    request : WalletRequest
        Request with wallet address
    use_case : GetBalanceSnapshotUseCase
        Use case for getting the balance snapshot

    Returns
    -------
    BalanceResponse
        Wallet balance information
    """
    return await use_case(wallet_address=request.wallet_address)


@router.post("/transactions", response_model=TransactionsResponse)
@inject
async def get_recent_transactions(
    request: GetTransactionsRequest,
    use_case: Annotated[
        GetRecentTransactionsUseCase, FromComponent("chain")
    ]
) -> TransactionsResponse:
    """
    Get the most recent transactions by scanning blocks backward.

    Parameters
    ----------
    request : GetTransactionsRequest
        Request with the number of transactions
    use_case : GetRecentTransactionsUseCase
        Use case for the block scan

    Returns
    -------
    TransactionsResponse
        Recent transactions, newest first
    """
    return await use_case(count=request.count)


@router.post("/transfers", response_model=TransfersResponse)
@inject
async def get_transfers(
    request: GetTransfersRequest,
    use_case: Annotated[
        GetTransferHistoryUseCase, FromComponent("chain")
    ]
) -> TransfersResponse:
    """
    Get recent token transfers of a wallet from Transfer logs.

    Parameters
    ----------
    request : GetTransfersRequest
        Request with wallet address and limit
    use_case : GetTransferHistoryUseCase
        Use case for the log query

    Returns
    -------
    TransfersResponse
        Transfers, newest first
    """
    return await use_case(wallet_address=request.wallet_address, limit=request.limit)


@router.post("/involved-balances", response_model=InvolvedBalancesResponse)
@inject
async def get_involved_balances(
    request: GetTransactionsRequest,
    use_case: Annotated[
        GetInvolvedBalancesUseCase, FromComponent("chain")
    ]
) -> InvolvedBalancesResponse:
    """Get native balances of every address in the most recent transactions."""
    return await use_case(count=request.count)


@router.post("/refresh", response_model=RefreshResponse)
@inject
async def refresh_wallet(
    request: WalletRequest,
    use_case: Annotated[
        RefreshWalletUseCase, FromComponent("chain")
    ]
) -> RefreshResponse:
    """
    Refresh the wallet session; skipped when a refresh is already running.

    Parameters
    ----------
    request : WalletRequest
        Request with wallet address
    use_case : RefreshWalletUseCase
        Use case for refreshing

    Returns
    -------
    RefreshResponse
        Whether the refresh ran and the resulting state
    """
    return await use_case(wallet_address=request.wallet_address)


@router.post("/state", response_model=WalletStateResponse)
@inject
async def get_wallet_state(
    request: WalletRequest,
    use_case: Annotated[
        GetWalletStateUseCase, FromComponent("chain")
    ]
) -> WalletStateResponse:
    """Get the current state of the wallet session."""
    return await use_case(wallet_address=request.wallet_address)
