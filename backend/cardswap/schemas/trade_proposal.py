from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from datetime import datetime
from typing import Optional, Literal
from cardswap.models.trade_proposal import TradeStatus

class TradeCards(BaseModel):
    send_cards: list[int] = Field(default=[], description="Card ids the sender gives")
    receive_cards: list[int] = Field(default=[], description="Card ids the sender asks for")
    add_cash: float = Field(default=0, ge=0, description="Cash the sender adds")
    ask_cash: float = Field(default=0, ge=0, description="Cash the sender asks the receiver to add")

    @model_validator(mode="after")
    def has_cards(self):
        if not self.send_cards and not self.receive_cards:
            raise ValueError("A trade must include at least one card")
        return self

    @model_validator(mode="after")
    def one_side_pays(self):
        if self.add_cash > 0 and self.ask_cash > 0:
            raise ValueError("A trade can either add cash or ask for cash, not both")
        return self

class TradeProposalCreate(TradeCards):
    trade_sent_to: int
    main_card: Optional[int] = None
    message: Optional[str] = Field(default=None, max_length=1000)

class TradeProposalUpdate(TradeCards):
    message: Optional[str] = Field(default=None, max_length=1000)

class CounterOfferCreate(TradeCards):
    counter_personalized_message: Optional[str] = Field(default=None, max_length=1000)

class PaymentConfirm(BaseModel):
    payment_id: str = Field(min_length=1)
    payer_id: Optional[str] = None
    amount: Optional[float] = Field(default=None, gt=0)

class ShipmentCreate(BaseModel):
    tracking_id: str = Field(min_length=1, max_length=255)
    carrier: Optional[str] = Field(default=None, max_length=50)
    selected_rate: Optional[str] = None
    to_address: Optional[str] = None
    from_address: Optional[str] = None

    @field_validator("tracking_id")
    @classmethod
    def tracking_id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Tracking id cannot be blank")
        return value

class TradeFilters(BaseModel):
    status: Optional[TradeStatus] = None
    role: Literal["sender", "receiver", "any"] = "any"

class TradeProposalOut(BaseModel):
    id: int
    code: Optional[str] = None
    trade_sent_by: int
    trade_sent_to: int
    send_cards: Optional[str] = None
    receive_cards: Optional[str] = None
    add_cash: float
    ask_cash: float
    message: Optional[str] = None
    counter_personalized_message: Optional[str] = None
    trade_status: TradeStatus
    trade_proposal_status_id: Optional[int] = None
    trade_amount_paid_on: Optional[datetime] = None
    is_payment_received: int
    trade_sender_confrimation: str = Field(validation_alias="trade_sender_confirmation")
    receiver_confirmation: str
    accepted_on: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
