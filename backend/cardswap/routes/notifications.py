from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from cardswap.database import get_db
from cardswap.dependencies import get_current_user
from cardswap.models.user import User
from cardswap.responses import api_response, build_pagination
from cardswap.schemas.notification import NotificationOut
from cardswap.services import notification as notifications

router = APIRouter()

@router.get("/")
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows, total = notifications.list_notifications(db, current_user.id, page, per_page)
    return api_response(
        200,
        True,
        "Notifications retrieved successfully",
        [NotificationOut.model_validate(row) for row in rows],
        build_pagination(page, per_page, total),
    )

@router.post("/{notification_id}/seen")
async def mark_seen(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = notifications.mark_seen(db, notification_id, current_user.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return api_response(200, True, "Notification marked as seen", NotificationOut.model_validate(notification))
