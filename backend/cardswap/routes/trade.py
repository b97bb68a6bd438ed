from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging
from cardswap.database import get_db
from cardswap.dependencies import get_current_user, get_mail_service
from cardswap.models.trade_proposal import TradeStatus
from cardswap.models.user import User
from cardswap.responses import api_response, build_pagination, raise_for_result
from cardswap.schemas.trade_proposal import (
    CounterOfferCreate,
    PaymentConfirm,
    ShipmentCreate,
    TradeFilters,
    TradeProposalCreate,
    TradeProposalOut,
    TradeProposalUpdate,
)
from cardswap.services import trade_proposal as trades
from cardswap.services.mail import MailService
from cardswap.services.trade_detail import get_trade_detail

logger = logging.getLogger(__name__)

router = APIRouter()

def _proposal_response(result, message: str, status_code: int = 200):
    proposal = raise_for_result(result)
    return api_response(status_code, True, message, TradeProposalOut.model_validate(proposal))

@router.get("/trades")
async def list_trades(
    status: Optional[TradeStatus] = None,
    role: str = Query("any", pattern="^(sender|receiver|any)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = TradeFilters(status=status, role=role)
    rows, total = trades.list_trade_proposals(db, current_user.id, filters, page, per_page)
    return api_response(
        200,
        True,
        "Trade proposals retrieved successfully",
        [TradeProposalOut.model_validate(row) for row in rows],
        build_pagination(page, per_page, total),
    )

@router.post("/trades")
def propose_trade(
    proposal: TradeProposalCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mail: MailService = Depends(get_mail_service),
):
    result = trades.propose_trade(db, current_user.id, proposal, mail)
    return _proposal_response(result, "Trade proposal sent successfully", 201)

@router.put("/trades/{trade_id}")
async def edit_trade(
    trade_id: int,
    changes: TradeProposalUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _proposal_response(trades.edit_trade(db, trade_id, current_user.id, changes), "Trade proposal updated successfully")

@router.post("/trades/{trade_id}/accept")
async def accept_trade(trade_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _proposal_response(trades.accept_trade(db, trade_id, current_user.id), "Trade proposal accepted successfully")

@router.post("/trades/{trade_id}/decline")
async def decline_trade(trade_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _proposal_response(trades.decline_trade(db, trade_id, current_user.id), "Trade proposal declined")

@router.post("/trades/{trade_id}/cancel")
async def cancel_trade(trade_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _proposal_response(trades.cancel_trade(db, trade_id, current_user.id), "Trade proposal cancelled")

@router.post("/trades/{trade_id}/counter")
async def counter_trade(
    trade_id: int,
    counter: CounterOfferCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _proposal_response(trades.counter_trade(db, trade_id, current_user.id, counter), "Counter offer sent successfully")

@router.post("/trades/{trade_id}/counter/accept")
async def accept_counter(trade_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _proposal_response(trades.accept_counter(db, trade_id, current_user.id), "Counter offer accepted successfully")

@router.post("/trades/{trade_id}/counter/decline")
async def decline_counter(trade_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _proposal_response(trades.decline_counter(db, trade_id, current_user.id), "Counter offer declined")

@router.post("/trades/{trade_id}/counter/cancel")
async def cancel_counter(trade_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _proposal_response(trades.cancel_counter(db, trade_id, current_user.id), "Counter offer cancelled")

@router.post("/trades/{trade_id}/pay")
async def pay_trade(trade_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _proposal_response(trades.pay_trade(db, trade_id, current_user.id), "Payment initiated")

@router.post("/trades/{trade_id}/confirm-payment")
async def confirm_payment(
    trade_id: int,
    payment: PaymentConfirm,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _proposal_response(trades.confirm_payment(db, trade_id, current_user.id, payment), "Payment confirmed successfully")

@router.post("/trades/{trade_id}/ship")
async def ship_trade(
    trade_id: int,
    shipment: ShipmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _proposal_response(trades.ship_trade(db, trade_id, current_user.id, shipment), "Shipment recorded successfully")

@router.post("/trades/{trade_id}/complete")
def complete_trade(
    trade_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mail: MailService = Depends(get_mail_service),
):
    return _proposal_response(trades.complete_trade(db, trade_id, current_user.id, mail), "Trade marked as completed")

@router.get("/trade-detail")
async def trade_detail(
    trade_id: int = Query(..., ge=1),
    card_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    logger.debug("Trade detail %s requested by %s (card %s)", trade_id, current_user.id, card_id)
    data = raise_for_result(get_trade_detail(db, trade_id, current_user.id))
    return api_response(200, True, "Trade details retrieved successfully", data)
