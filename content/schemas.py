from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chain_reader.schemas import validate_wallet_address


class SocialPosts(BaseModel):
    twitter: str | None = None
    instagram: str | None = None


class LinkItem(BaseModel):
    """
    Gated link owned by a creator.

    Attributes
    ----------
    link_id : str
        Link identifier
    title : str
        Content title
    buy_short_code : str
        Short code of the purchase page
    access_short_code : str
        Short code unlocking the content
    original_url : str
        Gated content URL
    price_in_erc20 : str
        Price in the token's smallest unit
    is_active : int
        Backend activity flag
    created_at : str
        Creation time as sent by the backend
    shareable_buy_link : str
        Public purchase URL
    social_posts : SocialPosts | None
        Generated social posts
    """
    link_id: str = Field(..., alias="linkId")
    title: str
    buy_short_code: str = Field(..., alias="buyShortCode")
    access_short_code: str = Field(..., alias="accessShortCode")
    original_url: str = Field(..., alias="originalUrl")
    price_in_erc20: str = Field(..., alias="priceInERC20")
    is_active: int = Field(..., alias="isActive")
    created_at: str = Field(..., alias="createdAt")
    shareable_buy_link: str = Field(..., alias="shareableBuyLink")
    social_posts: SocialPosts | None = Field(default=None, alias="socialPosts")

    model_config = ConfigDict(populate_by_name=True)


class CreatorLinksResponse(BaseModel):
    links: list[LinkItem]


class BuyLinkDetail(BaseModel):
    """
    Purchase details behind a buy short code.

    Attributes
    ----------
    link_id : str
        Link identifier
    buy_short_code : str
        Short code of the purchase page
    title : str
        Content title
    creator_address : str
        Wallet receiving the payment
    price_in_erc20 : str
        Price in the token's smallest unit
    payment_contract_address : str
        Contract the payment goes through
    is_active_on_db : int
        Backend activity flag
    """
    link_id: str = Field(..., alias="linkId")
    buy_short_code: str = Field(..., alias="buyShortCode")
    title: str
    creator_address: str = Field(..., alias="creatorAddress")
    price_in_erc20: str = Field(..., alias="priceInERC20")
    payment_contract_address: str = Field(..., alias="paymentContractAddress")
    is_active_on_db: int = Field(..., alias="isActiveOnDb")

    model_config = ConfigDict(populate_by_name=True)


class CreateGatedLinkRequest(BaseModel):
    """Body sent to the backend to create a gated link."""
    url: str
    title: str
    price_in_usd_display: str = Field(..., alias="priceInUSD_display")
    price_in_erc20: str = Field(..., alias="priceInERC20")
    creator_address: str = Field(..., alias="creatorAddress")

    model_config = ConfigDict(populate_by_name=True)


class CreateLinkRequest(BaseModel):
    """
    Request schema for creating a gated link priced in USD.

    Attributes
    ----------
    url : str
        Content URL
    title : str
        Content title
    price_usd : Decimal
        Price in USD
    creator_address : str
        Creator wallet
    """
    url: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    price_usd: Decimal = Field(..., gt=0)
    creator_address: str

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Invalid content link URL')
        return v

    @field_validator('creator_address')
    @classmethod
    def validate_address(cls, v: str) -> str:
        return validate_wallet_address(v)


class CreateLinkResponse(BaseModel):
    created: bool
    price_in_erc20: str
