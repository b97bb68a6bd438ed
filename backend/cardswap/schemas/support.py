from pydantic import BaseModel, EmailStr, Field, ConfigDict
from datetime import datetime
from typing import Optional
from cardswap.models.support import SupportRequestStatus

class SupportTicketCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    subject: str = Field(min_length=1, max_length=255)
    comment: str = Field(min_length=1)

class SupportStatusUpdate(BaseModel):
    status: SupportRequestStatus

class SupportTicketOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    first_name: str
    last_name: str
    email: str
    subject: str
    comment: str
    support_request_status: SupportRequestStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
