from dishka import Provider, Scope, provide, FromComponent
from typing import Annotated
import logging

from chain_reader.price import PriceFeed
from content.services import ContentAPIService
from content.usecases import CreateLinkUseCase, GetBuyLinkUseCase, ListCreatorLinksUseCase
from core.environment.config import Settings


class ContentProvider(Provider):
    """
    Provider for content backend dependencies.
    """

    component = "content"

    @provide(scope=Scope.APP)
    def get_content_service(
        self,
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> ContentAPIService:
        return ContentAPIService(settings.content_api_url, logger, timeout=settings.rpc_timeout)

    @provide(scope=Scope.REQUEST)
    def get_buy_link_use_case(
        self,
        content_service: Annotated[ContentAPIService, FromComponent("content")]
    ) -> GetBuyLinkUseCase:
        return GetBuyLinkUseCase(content_service)

    @provide(scope=Scope.REQUEST)
    def get_creator_links_use_case(
        self,
        content_service: Annotated[ContentAPIService, FromComponent("content")]
    ) -> ListCreatorLinksUseCase:
        return ListCreatorLinksUseCase(content_service)

    @provide(scope=Scope.REQUEST)
    def get_create_link_use_case(
        self,
        content_service: Annotated[ContentAPIService, FromComponent("content")],
        price_feed: Annotated[PriceFeed, FromComponent("chain")],
        settings: Annotated[Settings, FromComponent("environment")]
    ) -> CreateLinkUseCase:
        """
        Provide create link use case.

        Parameters
        ----------
        content_service : ContentAPIService
            Content backend client
        price_feed : PriceFeed
            USD price of the payment token
        settings : Settings
            Application settings

        Returns
        -------
        CreateLinkUseCase
            Create link use case
        """
        return CreateLinkUseCase(content_service, price_feed, settings.token_decimals)
