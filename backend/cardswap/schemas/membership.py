from pydantic import BaseModel, Field, ConfigDict
from datetime import date, datetime
from typing import Optional
from cardswap.models.membership import TransactionType

class MembershipOut(BaseModel):
    id: int
    title: Optional[str] = None
    price: float
    type: str
    status: str

    model_config = ConfigDict(from_attributes=True)

class MembershipPurchase(BaseModel):
    membership_id: int
    payment_id: str = Field(min_length=1)
    amount: float = Field(ge=0)
    months: Optional[int] = Field(default=None, gt=0)

class MembershipUserOut(BaseModel):
    id: int
    user_id: int
    membership_id: int
    expired_date: Optional[date] = None
    type: str
    status: str

    model_config = ConfigDict(from_attributes=True)

class TransactionOut(BaseModel):
    id: int
    user_id: int
    payment_id: Optional[str] = None
    amount: Optional[float] = None
    type: TransactionType
    note: Optional[str] = None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class EarnCreditOut(BaseModel):
    id: int
    type: str
    title: Optional[str] = None
    amount: float
    status: str

    model_config = ConfigDict(from_attributes=True)

class CreditClaim(BaseModel):
    earn_credit_id: int
