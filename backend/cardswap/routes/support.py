from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from cardswap.database import get_db
from cardswap.dependencies import get_admin_user, get_current_user
from cardswap.models.support import SupportRequestStatus
from cardswap.models.user import User
from cardswap.responses import api_response, build_pagination
from cardswap.schemas.support import SupportStatusUpdate, SupportTicketCreate, SupportTicketOut
from cardswap.services import support as support_service

router = APIRouter()

@router.post("/create")
async def create_ticket(
    ticket: SupportTicketCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_ticket = support_service.create_ticket(db, current_user.id, ticket)
    return api_response(201, True, "Support request submitted successfully", SupportTicketOut.model_validate(db_ticket))

@router.get("/my-tickets")
async def my_tickets(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows, total = support_service.list_user_tickets(db, current_user.id, page, per_page)
    return api_response(
        200,
        True,
        "Support tickets retrieved successfully",
        [SupportTicketOut.model_validate(row) for row in rows],
        build_pagination(page, per_page, total),
    )

@router.get("/all")
async def all_tickets(
    status: Optional[SupportRequestStatus] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    rows, total = support_service.list_all_tickets(db, page, per_page, status)
    return api_response(
        200,
        True,
        "Support tickets retrieved successfully",
        [SupportTicketOut.model_validate(row) for row in rows],
        build_pagination(page, per_page, total),
    )

@router.patch("/{ticket_id}/status")
async def update_status(
    ticket_id: int,
    update: SupportStatusUpdate,
    current_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    ticket = support_service.update_ticket_status(db, ticket_id, update.status)
    if not ticket:
        raise HTTPException(status_code=404, detail="Support ticket not found")
    return api_response(200, True, "Support ticket status updated", SupportTicketOut.model_validate(ticket))
