from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime
from typing import Optional
from cardswap.models.buy_sell import BuyingStatus

class CartOffer(BaseModel):
    offer_amt_buyer: float = Field(gt=0, description="Amount the buyer offers for the card")

class DealShipment(BaseModel):
    track_id: str = Field(min_length=1, max_length=255)
    carrier: Optional[str] = Field(default=None, max_length=50)

    @field_validator("track_id")
    @classmethod
    def track_id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Tracking id cannot be blank")
        return value

class BuySellCardOut(BaseModel):
    id: int
    code: Optional[str] = None
    seller: Optional[int] = None
    buyer: Optional[int] = None
    main_card: Optional[int] = None
    card_ids: list[int]
    offer_amt_buyer: Optional[float] = None
    products_offer_amount: Optional[float] = None
    shipment_amount: Optional[float] = None
    total_amount: Optional[float] = None
    paid_amount: Optional[float] = None
    amount_paid_on: Optional[datetime] = None
    buying_status: BuyingStatus
    buy_offer_status_id: Optional[int] = None
    track_id: Optional[str] = None
    shipped_on: Optional[datetime] = None
    delivered_on: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
