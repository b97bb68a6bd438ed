from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from cardswap.database import get_db
from cardswap.dependencies import get_current_user
from cardswap.models.user import User
from cardswap.responses import api_response, raise_for_result
from cardswap.schemas.review import BuySellReviewCreate
from cardswap.services.rating import submit_buy_sell_review

router = APIRouter()

@router.post("/buy-sell/{buy_sell_id}/review")
async def review_buy_sell(
    buy_sell_id: int,
    review: BuySellReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = submit_buy_sell_review(db, buy_sell_id, current_user.id, review.rating, review.review)
    return api_response(200, True, "Review submitted successfully", raise_for_result(result))
