from fastapi import APIRouter, HTTPException
from dishka.integrations.fastapi import inject
from dishka import FromComponent
from typing import Annotated
from content.schemas import BuyLinkDetail, CreateLinkRequest, CreateLinkResponse, LinkItem
from content.usecases import CreateLinkUseCase, GetBuyLinkUseCase, ListCreatorLinksUseCase
from chain_reader.schemas import validate_wallet_address

router = APIRouter(
    prefix="/api/content",
    tags=["Content"]
)


@router.get("/buy/{short_code}", response_model=BuyLinkDetail, response_model_by_alias=True)
@inject
async def get_buy_link(
    short_code: str,
    use_case: Annotated[GetBuyLinkUseCase, FromComponent("content")]
) -> BuyLinkDetail:
    """
    Get purchase details behind a buy short code.

    Parameters
    ----------
    short_code : str
        Buy short code
    use_case : GetBuyLinkUseCase
        Use case for the lookup

    Returns
    -------
    BuyLinkDetail
        Purchase details
    """
    return await use_case(short_code=short_code)


@router.get("/creator/{creator_address}", response_model=list[LinkItem], response_model_by_alias=True)
@inject
async def list_creator_links(
    creator_address: str,
    use_case: Annotated[ListCreatorLinksUseCase, FromComponent("content")]
) -> list[LinkItem]:
    """List gated links of a creator wallet."""
    try:
        address = validate_wallet_address(creator_address)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return await use_case(creator_address=address)


@router.post("/links", response_model=CreateLinkResponse)
@inject
async def create_link(
    request: CreateLinkRequest,
    use_case: Annotated[CreateLinkUseCase, FromComponent("content")]
) -> CreateLinkResponse:
    """
    Create a gated link priced in USD.

    Parameters
    ----------
    request : CreateLinkRequest
        Link to create
    use_case : CreateLinkUseCase
        Use case for creating the link

    Returns
    -------
    CreateLinkResponse
        Token price sent to the backend
    """
    return await use_case(request)
