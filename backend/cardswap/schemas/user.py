from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from cardswap.models.user import UserRole

class UserBase(BaseModel):
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    username: str = Field(min_length=1, max_length=255)
    email: EmailStr

class UserCreate(UserBase):
    phone_number: str = Field(min_length=3, max_length=12)
    password: str = Field(min_length=6)
    country_code: Optional[str] = None

    @field_validator("first_name", "last_name", "username", "phone_number")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

class UserLogin(BaseModel):
    identifier: str  # email or username
    password: str

class UserOut(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: str
    email: EmailStr
    profile_picture: Optional[str] = None
    user_role: UserRole
    cxp_coins: int
    credit: float
    ratings: Optional[str] = None
    followers: int
    trade_transactions: int
    trading_cards: int

    model_config = ConfigDict(from_attributes=True)

class PublicProfile(BaseModel):
    id: int
    username: str
    first_name: Optional[str] = None
    profile_picture: Optional[str] = None
    ratings: Optional[str] = None
    followers: int
    trade_transactions: int
    trading_cards: int

    model_config = ConfigDict(from_attributes=True)

class FollowRequest(BaseModel):
    user_id: int

class Token(BaseModel):
    token: str
    user: UserOut

class TraderOut(BaseModel):
    id: int
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_picture: Optional[str] = None
    ratings: Optional[str] = None
    trade_transactions: int
    trading_cards: int

    model_config = ConfigDict(from_attributes=True)

class AddressCreate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=255)
    street1: str = Field(min_length=1, max_length=255)
    street2: Optional[str] = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=255)
    state: Optional[str] = Field(default=None, max_length=255)
    zip: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=255)
    mark_default: bool = False

class AddressOut(BaseModel):
    id: int
    name: Optional[str] = None
    phone: Optional[str] = None
    street1: str
    street2: Optional[str] = None
    city: str
    state: Optional[str] = None
    zip: str
    country: str
    mark_default: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
