from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from cardswap.database import get_db
from cardswap.dependencies import get_current_user
from cardswap.models.user import User
from cardswap.responses import api_response
from cardswap.schemas.membership import EarnCreditOut
from cardswap.services import credits

router = APIRouter()

@router.get("/")
async def list_earn_credits(db: Session = Depends(get_db)):
    rows = credits.list_earn_credits(db)
    return api_response(200, True, "Earn credits list retrieved successfully", [EarnCreditOut.model_validate(row) for row in rows])

@router.get("/user")
async def list_user_earn_credits(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return api_response(200, True, "Earn credits list retrieved successfully", credits.list_earn_credits_for_user(db, current_user.id))
