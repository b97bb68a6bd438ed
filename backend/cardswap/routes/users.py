from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from cardswap.database import get_db
from typing import Optional
from cardswap.dependencies import get_current_user, get_optional_user
from cardswap.models.user import User
from cardswap.responses import api_response, build_pagination, raise_for_result
from cardswap.schemas.user import FollowRequest, PublicProfile, TraderOut, UserOut
from cardswap.services import users as user_service

router = APIRouter()

@router.get("/my-profile")
async def my_profile(current_user: User = Depends(get_current_user)):
    return api_response(200, True, "Profile retrieved successfully", UserOut.model_validate(current_user))

@router.get("/profile/{user_id}")
async def public_profile(user_id: int, db: Session = Depends(get_db)):
    user = user_service.get_active_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return api_response(200, True, "Profile retrieved successfully", PublicProfile.model_validate(user))

@router.post("/follow")
async def follow(
    request: FollowRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = raise_for_result(user_service.toggle_follow(db, current_user.id, request.user_id))
    message = "User followed successfully" if data["following"] else "User unfollowed successfully"
    return api_response(200, True, message, data)

@router.get("/top-traders")
async def top_traders(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    rows = user_service.top_traders(db, limit)
    return api_response(200, True, "Top traders retrieved successfully", [TraderOut.model_validate(row) for row in rows])

@router.get("/traders-list")
async def traders_list(
    search: Optional[str] = Query(None, max_length=255),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    exclude_id = current_user.id if current_user else None
    rows, total = user_service.traders_list(db, page, per_page, search, exclude_id)
    return api_response(
        200,
        True,
        "Traders retrieved successfully",
        [TraderOut.model_validate(row) for row in rows],
        build_pagination(page, per_page, total),
    )
