from chain_reader.price import PriceFeed
from content.schemas import (
    BuyLinkDetail,
    CreateGatedLinkRequest,
    CreateLinkRequest,
    CreateLinkResponse,
    LinkItem,
)
from content.services import ContentAPIService, usd_to_token_units


class GetBuyLinkUseCase:
    """
    Use case for getting purchase details of a buy short code.

    Parameters
    ----------
    content_service : ContentAPIService
        Content backend client
    """

    def __init__(self, content_service: ContentAPIService):
        self.content_service = content_service

    async def __call__(self, short_code: str) -> BuyLinkDetail:
        return await self.content_service.get_buy_link(short_code)


class ListCreatorLinksUseCase:
    def __init__(self, content_service: ContentAPIService):
        self.content_service = content_service

    async def __call__(self, creator_address: str) -> list[LinkItem]:
        return await self.content_service.list_creator_links(creator_address)


class CreateLinkUseCase:
    """
    Use case for creating a gated link priced in USD.

    The USD price is converted into token units with the configured price
    feed before it is sent to the backend.

    Parameters
    ----------
    content_service : ContentAPIService
        Content backend client
    price_feed : PriceFeed
        USD price of the payment token
    token_decimals : int
        Decimals of the payment token
    """

    def __init__(self, content_service: ContentAPIService, price_feed: PriceFeed, token_decimals: int):
        self.content_service = content_service
        self.price_feed = price_feed
        self.token_decimals = token_decimals

    async def __call__(self, request: CreateLinkRequest) -> CreateLinkResponse:
        """
        Execute use case.

        Parameters
        ----------
        request : CreateLinkRequest
            Link to create

        Returns
        -------
        CreateLinkResponse
            Token price sent to the backend
        """
        token_price = await self.price_feed.get_usd_price()
        price_in_erc20 = usd_to_token_units(request.price_usd, token_price, self.token_decimals)

        await self.content_service.create_gated_link(CreateGatedLinkRequest(
            url=request.url,
            title=request.title,
            price_in_usd_display=str(request.price_usd),
            price_in_erc20=price_in_erc20,
            creator_address=request.creator_address
        ))
        return CreateLinkResponse(created=True, price_in_erc20=price_in_erc20)
