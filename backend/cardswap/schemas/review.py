from pydantic import BaseModel, Field
from typing import Optional

class BuySellReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=10)
    review: Optional[str] = Field(default=None, max_length=2000)
