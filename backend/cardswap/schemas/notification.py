from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional

class NotificationOut(BaseModel):
    id: int
    notification_sent_by: Optional[int] = None
    notification_sent_to: Optional[int] = None
    trade_proposal_id: Optional[int] = None
    buy_sell_card_id: Optional[int] = None
    message: Optional[str] = None
    seen: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
