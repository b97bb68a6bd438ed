from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional, Literal, Union, Annotated, Any


# ============== Category attribute variants ==============

class CardAttributesBase(BaseModel):
    """Attributes shared by every collectible kind."""
    model_config = ConfigDict(extra="forbid")

    graded: bool = False
    grade_rating: Optional[str] = None
    professional_grader: Optional[str] = None


class SportsCardAttributes(CardAttributesBase):
    kind: Literal["sports_card"]
    player: Optional[str] = None
    season: Optional[str] = None
    manufacturer: Optional[str] = None
    set_name: Optional[str] = None
    card_number: Optional[str] = None
    is_rookie_card: bool = False
    is_autograph_card: bool = False
    parallel_variety: Optional[str] = None
    card_numbered: Optional[str] = None


class ComicAttributes(CardAttributesBase):
    kind: Literal["comic"]
    series_title: Optional[str] = None
    issue_number: Optional[str] = None
    publisher: Optional[str] = None
    publication_year: Optional[int] = None
    variant: Optional[str] = None
    key_features: Optional[str] = None
    printing_edition: Optional[str] = None


class CoinAttributes(CardAttributesBase):
    kind: Literal["coin"]
    denomination: Optional[str] = None
    mint_mark: Optional[str] = None
    year: Optional[int] = None
    mintage_population: Optional[int] = None
    fineness: Optional[str] = None
    country: Optional[str] = None


class StampAttributes(CardAttributesBase):
    kind: Literal["stamp"]
    country: Optional[str] = None
    denomination: Optional[str] = None
    year: Optional[int] = None
    perforation: Optional[str] = None
    period_or_era: Optional[str] = None


class VideoGameAttributes(CardAttributesBase):
    kind: Literal["video_game"]
    platform: Optional[str] = None
    console_brand: Optional[str] = None
    region: Optional[str] = None
    release_year: Optional[int] = None
    storage_capacity: Optional[str] = None
    is_sealed: bool = False


class VinylAttributes(CardAttributesBase):
    kind: Literal["vinyl"]
    artist_band_name: Optional[str] = None
    album_title: Optional[str] = None
    record_label: Optional[str] = None
    catalog_number: Optional[str] = None
    release_year: Optional[int] = None
    speed: Optional[str] = None
    pressing_information: Optional[str] = None
    tracklist: Optional[list[str]] = None


CardAttributes = Annotated[
    Union[
        SportsCardAttributes,
        ComicAttributes,
        CoinAttributes,
        StampAttributes,
        VideoGameAttributes,
        VinylAttributes,
    ],
    Field(discriminator="kind"),
]


# ============== Listing schemas ==============

class TradingCardCreate(BaseModel):
    category_id: int
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    trading_card_estimated_value: Optional[float] = Field(default=None, ge=0)
    trading_card_asking_price: Optional[float] = Field(default=None, ge=0)
    can_trade: bool = True
    can_buy: bool = False
    trading_card_offer_accept_above: Optional[float] = Field(default=None, ge=0)
    free_shipping: bool = False
    usa_shipping_flat_rate: Optional[float] = Field(default=None, ge=0)
    usa_add_product_flat_rate: Optional[float] = Field(default=None, ge=0)
    canada_shipping_flat_rate: Optional[float] = Field(default=None, ge=0)
    canada_add_product_flat_rate: Optional[float] = Field(default=None, ge=0)
    attributes: CardAttributes


class TradingCardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    trading_card_estimated_value: Optional[float] = Field(default=None, ge=0)
    trading_card_asking_price: Optional[float] = Field(default=None, ge=0)
    can_trade: Optional[bool] = None
    can_buy: Optional[bool] = None
    trading_card_offer_accept_above: Optional[float] = Field(default=None, ge=0)
    free_shipping: Optional[bool] = None
    usa_shipping_flat_rate: Optional[float] = Field(default=None, ge=0)
    usa_add_product_flat_rate: Optional[float] = Field(default=None, ge=0)
    canada_shipping_flat_rate: Optional[float] = Field(default=None, ge=0)
    canada_add_product_flat_rate: Optional[float] = Field(default=None, ge=0)
    attributes: Optional[CardAttributes] = None


class TradingCardOut(BaseModel):
    id: int
    trader_id: int
    category_id: int
    title: Optional[str] = None
    search_param: Optional[str] = None
    description: Optional[str] = None
    trading_card_estimated_value: Optional[float] = None
    trading_card_asking_price: Optional[float] = None
    trading_card_offer_accept_above: Optional[float] = None
    can_trade: str
    can_buy: str
    free_shipping: str
    usa_shipping_flat_rate: Optional[float] = None
    usa_add_product_flat_rate: Optional[float] = None
    canada_shipping_flat_rate: Optional[float] = None
    canada_add_product_flat_rate: Optional[float] = None
    is_traded: str
    attributes: dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CategoryOut(BaseModel):
    id: int
    sport_name: str
    slug: str
    card_kind: str

    model_config = ConfigDict(from_attributes=True)
