"""Trade proposal mutations.

Every mutation commits its own changes first and only then calls the status
resolver and writes trader notifications; neither of those can undo it.
"""
import logging
import secrets
from datetime import datetime
from typing import Optional
from sqlalchemy import or_, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from cardswap.models.membership import CreditDeductionLog
from cardswap.models.notification import NotificationSetFor
from cardswap.models.shipment import Shipment
from cardswap.models.trade_proposal import (
    ACCEPTED_FAMILY,
    TradeProposal,
    TradeStatus,
    join_card_ids,
)
from cardswap.models.trading_card import TradingCard
from cardswap.models.user import User
from cardswap.schemas.trade_proposal import (
    CounterOfferCreate,
    PaymentConfirm,
    ShipmentCreate,
    TradeFilters,
    TradeProposalCreate,
    TradeProposalUpdate,
)
from cardswap.services.mail import MailService
from cardswap.services.notification import NotificationContext, notify_traders
from cardswap.services.result import ServiceResult
from cardswap.services.trade_status import both_traders_shipped, set_trade_proposal_status

logger = logging.getLogger(__name__)

SENDER = "sender"
RECEIVER = "receiver"

_RECOUNT_TRADES_SQL = text(
    "UPDATE users SET trade_transactions = ("
    " SELECT COUNT(*) FROM trade_proposals"
    " WHERE trade_status = 'complete' AND (trade_sent_by = :user_id OR trade_sent_to = :user_id)"
    ") WHERE id = :user_id"
)

def generate_trade_code() -> str:
    return f"TR{datetime.utcnow():%y%m%d}{secrets.token_hex(3).upper()}"

def _role(proposal: TradeProposal, user_id: int) -> Optional[str]:
    if user_id == proposal.trade_sent_by:
        return SENDER
    if user_id == proposal.trade_sent_to:
        return RECEIVER
    return None

def _load(db: Session, trade_id: int, user_id: int, role: Optional[str] = None, statuses=None):
    """Fetch a proposal the user may act on, or the failure explaining why not."""
    proposal = db.query(TradeProposal).filter(TradeProposal.id == trade_id).first()
    if proposal is None:
        return None, ServiceResult.fail("Trade proposal not found", 404)
    actual_role = _role(proposal, user_id)
    if actual_role is None or (role is not None and actual_role != role):
        return None, ServiceResult.fail("You are not allowed to perform this action on this trade", 403)
    if statuses is not None and proposal.trade_status not in statuses:
        return None, ServiceResult.fail(
            f"This action is not available while the trade is {proposal.trade_status.value}", 400
        )
    return proposal, None

def _unique(ids):
    return list(dict.fromkeys(ids))

def _check_cards(db: Session, card_ids, owner_id: int) -> Optional[str]:
    if not card_ids:
        return None
    cards = {card.id: card for card in db.query(TradingCard).filter(TradingCard.id.in_(card_ids)).all()}
    for card_id in card_ids:
        card = cards.get(card_id)
        if (
            card is None
            or card.trader_id != owner_id
            or card.mark_as_deleted
            or card.is_traded == "1"
            or card.can_trade != "1"
        ):
            return f"Card {card_id} is not available for this trade"
    return None

def _apply_cards(db: Session, proposal: TradeProposal, payload) -> Optional[str]:
    send_ids = _unique(payload.send_cards)
    receive_ids = _unique(payload.receive_cards)
    error = _check_cards(db, send_ids, proposal.trade_sent_by) or _check_cards(db, receive_ids, proposal.trade_sent_to)
    if error:
        return error
    proposal.send_cards = join_card_ids(send_ids)
    proposal.receive_cards = join_card_ids(receive_ids)
    proposal.add_cash = payload.add_cash
    proposal.ask_cash = payload.ask_cash
    return None

def _resolve(db: Session, trade_id: int, *aliases):
    for alias in aliases:
        if not alias:
            continue
        outcome = set_trade_proposal_status(db, trade_id, alias)
        if not outcome.success:
            logger.error("Status %s not applied to trade %s: %s", alias, trade_id, outcome.error)

def _notify(db: Session, proposal: TradeProposal, act: str, actor_id: int):
    db.refresh(proposal)
    status_row = proposal.proposal_status
    context = NotificationContext(
        sender_alias=proposal.sender.username if proposal.sender else "",
        receiver_alias=proposal.receiver.username if proposal.receiver else "",
        sender_trade_status=(status_row.to_sender or "") if status_row else "",
        receiver_trade_status=(status_row.to_receiver or "") if status_row else "",
    )
    other_id = proposal.trade_sent_to if actor_id == proposal.trade_sent_by else proposal.trade_sent_by
    notify_traders(db, act, actor_id, other_id, proposal.id, NotificationSetFor.Trade, context)

def _commit(db: Session, proposal: TradeProposal, action: str) -> Optional[ServiceResult]:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error trying to %s trade %s", action, proposal.id)
        return ServiceResult.fail(f"Failed to {action} trade proposal", 500)
    return None

def _finish(db: Session, proposal: TradeProposal, actor_id: int, *aliases) -> ServiceResult:
    _resolve(db, proposal.id, *aliases)
    _notify(db, proposal, aliases[0], actor_id)
    db.refresh(proposal)
    return ServiceResult.ok(proposal)

def _pay_variant(proposal: TradeProposal, prefix: str) -> Optional[str]:
    if proposal.trade_amount_paid_on is not None:
        return None
    if (proposal.add_cash or 0) > 0:
        return f"{prefix}-sender-pay"
    if (proposal.ask_cash or 0) > 0:
        return f"{prefix}-receiver-pay"
    return None

def payer_role(proposal: TradeProposal) -> Optional[str]:
    """Which party owes cash: the sender for ``add_cash``, the receiver for ``ask_cash``."""
    if (proposal.add_cash or 0) > 0:
        return SENDER
    if (proposal.ask_cash or 0) > 0:
        return RECEIVER
    return None

# ============== Listing ==============

def list_trade_proposals(db: Session, user_id: int, filters: TradeFilters, page: int, per_page: int):
    query = db.query(TradeProposal)
    if filters.role == SENDER:
        query = query.filter(TradeProposal.trade_sent_by == user_id)
    elif filters.role == RECEIVER:
        query = query.filter(TradeProposal.trade_sent_to == user_id)
    else:
        query = query.filter(or_(TradeProposal.trade_sent_by == user_id, TradeProposal.trade_sent_to == user_id))
    if filters.status is not None:
        query = query.filter(TradeProposal.trade_status == filters.status)

    total = query.count()
    rows = (
        query.order_by(TradeProposal.updated_at.desc(), TradeProposal.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return rows, total

# ============== Offer negotiation ==============

def propose_trade(db: Session, sender_id: int, payload: TradeProposalCreate, mail: Optional[MailService] = None) -> ServiceResult:
    if payload.trade_sent_to == sender_id:
        return ServiceResult.fail("You cannot send a trade proposal to yourself", 400)
    receiver = db.query(User).filter(User.id == payload.trade_sent_to).first()
    if receiver is None:
        return ServiceResult.fail("Trade partner not found", 404)

    proposal = TradeProposal(
        code=generate_trade_code(),
        trade_sent_by=sender_id,
        trade_sent_to=receiver.id,
        message=payload.message,
        trade_status=TradeStatus.new,
    )
    error = _apply_cards(db, proposal, payload)
    if error:
        return ServiceResult.fail(error, 400)
    proposal.main_card = payload.main_card or (proposal.receive_card_ids or proposal.send_card_ids)[0]

    db.add(proposal)
    failure = _commit(db, proposal, "create")
    if failure:
        return failure
    logger.info("Trade %s proposed by %s to %s", proposal.id, sender_id, receiver.id)

    if mail is not None:
        mail.send("trade-proposal-received", {
            "to": receiver.email,
            "name": f"{receiver.first_name or ''} {receiver.last_name or ''}".strip(),
            "trade_code": proposal.code,
        })
    return _finish(db, proposal, sender_id, "trade-sent")

def edit_trade(db: Session, trade_id: int, user_id: int, payload: TradeProposalUpdate) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, SENDER, (TradeStatus.new,))
    if failure:
        return failure
    error = _apply_cards(db, proposal, payload)
    if error:
        return ServiceResult.fail(error, 400)
    proposal.message = payload.message
    proposal.is_edited = 1
    failure = _commit(db, proposal, "edit")
    if failure:
        return failure
    return _finish(db, proposal, user_id, "trade-offer-updated")

def _settle_acceptance(db: Session, proposal: TradeProposal, status: TradeStatus):
    """Lock the trade in: charge each party a coin and take its cards off the table.

    Returns the ids of other open proposals that were cancelled because they
    offered or asked for one of this trade's cards.
    """
    now = datetime.utcnow()
    proposal.trade_status = status
    proposal.accepted_on = now

    for user, source in ((proposal.sender, "Sender"), (proposal.receiver, "Receiver")):
        user.cxp_coins -= 1
        db.add(CreditDeductionLog(
            trade_id=proposal.id,
            trade_status=status.value,
            sent_by=proposal.trade_sent_by,
            sent_to=proposal.trade_sent_to,
            coin=1,
            status="Success",
            deduction_from=source,
        ))

    card_ids = set(proposal.send_card_ids) | set(proposal.receive_card_ids)
    if card_ids:
        db.query(TradingCard).filter(TradingCard.id.in_(card_ids)).update(
            {TradingCard.is_traded: "1"}, synchronize_session=False
        )

    cancelled = []
    parties = (proposal.trade_sent_by, proposal.trade_sent_to)
    open_proposals = (
        db.query(TradeProposal)
        .filter(
            TradeProposal.id != proposal.id,
            TradeProposal.trade_status.in_((TradeStatus.new, TradeStatus.counter_offer)),
            or_(TradeProposal.trade_sent_by.in_(parties), TradeProposal.trade_sent_to.in_(parties)),
        )
        .all()
    )
    for other in open_proposals:
        if card_ids & (set(other.send_card_ids) | set(other.receive_card_ids)):
            other.trade_status = TradeStatus.cancel
            cancelled.append(other.id)
    return cancelled

def _accept(db: Session, proposal: TradeProposal, user_id: int, status: TradeStatus, event: str, pay_prefix: str) -> ServiceResult:
    for party in (proposal.sender, proposal.receiver):
        if party.cxp_coins < 1:
            return ServiceResult.fail(f"{party.username} does not have enough coins to complete this trade", 400)
    card_ids = set(proposal.send_card_ids) | set(proposal.receive_card_ids)
    if card_ids:
        traded = (
            db.query(TradingCard.id)
            .filter(TradingCard.id.in_(card_ids), TradingCard.is_traded == "1")
            .order_by(TradingCard.id)
            .first()
        )
        if traded is not None:
            return ServiceResult.fail(f"Card {traded.id} is already part of another trade", 400)
    try:
        cancelled = _settle_acceptance(db, proposal, status)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error accepting trade %s", proposal.id)
        return ServiceResult.fail("Failed to accept trade proposal", 500)

    logger.info("Trade %s %s by %s; %d conflicting proposals cancelled", proposal.id, status.value, user_id, len(cancelled))
    for other_id in cancelled:
        _resolve(db, other_id, "trade-cancelled")
    return _finish(db, proposal, user_id, event, _pay_variant(proposal, pay_prefix))

def accept_trade(db: Session, trade_id: int, user_id: int) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, RECEIVER, (TradeStatus.new,))
    if failure:
        return failure
    return _accept(db, proposal, user_id, TradeStatus.accepted, "trade-accepted", "trade-offer-accepted")

def decline_trade(db: Session, trade_id: int, user_id: int) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, RECEIVER, (TradeStatus.new,))
    if failure:
        return failure
    proposal.trade_status = TradeStatus.declined
    failure = _commit(db, proposal, "decline")
    if failure:
        return failure
    return _finish(db, proposal, user_id, "trade-cancelled")

def cancel_trade(db: Session, trade_id: int, user_id: int) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, SENDER, (TradeStatus.new,))
    if failure:
        return failure
    proposal.trade_status = TradeStatus.cancel
    failure = _commit(db, proposal, "cancel")
    if failure:
        return failure
    return _finish(db, proposal, user_id, "trade-cancelled")

def counter_trade(db: Session, trade_id: int, user_id: int, payload: CounterOfferCreate) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, RECEIVER, (TradeStatus.new,))
    if failure:
        return failure
    error = _apply_cards(db, proposal, payload)
    if error:
        return ServiceResult.fail(error, 400)
    proposal.trade_status = TradeStatus.counter_offer
    proposal.counter_offer = "1"
    proposal.counter_personalized_message = payload.counter_personalized_message
    failure = _commit(db, proposal, "counter")
    if failure:
        return failure
    return _finish(db, proposal, user_id, "counter-trade-offer")

def accept_counter(db: Session, trade_id: int, user_id: int) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, SENDER, (TradeStatus.counter_offer,))
    if failure:
        return failure
    return _accept(db, proposal, user_id, TradeStatus.counter_accepted, "counter-offer-accepted", "counter-offer-accepted")

def decline_counter(db: Session, trade_id: int, user_id: int) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, SENDER, (TradeStatus.counter_offer,))
    if failure:
        return failure
    proposal.trade_status = TradeStatus.counter_declined
    failure = _commit(db, proposal, "decline counter offer on")
    if failure:
        return failure
    return _finish(db, proposal, user_id, "trade-cancelled")

def cancel_counter(db: Session, trade_id: int, user_id: int) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, RECEIVER, (TradeStatus.counter_offer,))
    if failure:
        return failure
    proposal.trade_status = TradeStatus.cancel
    failure = _commit(db, proposal, "cancel counter offer on")
    if failure:
        return failure
    return _finish(db, proposal, user_id, "trade-cancelled")

# ============== Payment ==============

def _load_for_payment(db: Session, trade_id: int, user_id: int):
    proposal, failure = _load(db, trade_id, user_id, statuses=ACCEPTED_FAMILY)
    if failure:
        return None, failure
    payer = payer_role(proposal)
    if payer is None:
        return None, ServiceResult.fail("This trade has no cash to pay", 400)
    if _role(proposal, user_id) != payer:
        return None, ServiceResult.fail("Only the paying trader can pay for this trade", 403)
    if proposal.trade_amount_paid_on is not None:
        return None, ServiceResult.fail("This trade has already been paid", 400)
    return proposal, None

def pay_trade(db: Session, trade_id: int, user_id: int) -> ServiceResult:
    proposal, failure = _load_for_payment(db, trade_id, user_id)
    if failure:
        return failure
    proposal.is_payment_init = 1
    proposal.payment_init_date = datetime.utcnow()
    failure = _commit(db, proposal, "start payment for")
    if failure:
        return failure
    return _finish(db, proposal, user_id, "payment-made")

def confirm_payment(db: Session, trade_id: int, user_id: int, payload: PaymentConfirm) -> ServiceResult:
    proposal, failure = _load_for_payment(db, trade_id, user_id)
    if failure:
        return failure
    now = datetime.utcnow()
    owed = proposal.add_cash if payer_role(proposal) == SENDER else proposal.ask_cash
    if not proposal.is_payment_init:
        proposal.is_payment_init = 1
        proposal.payment_init_date = now
    proposal.trade_amount_pay_id = payload.payment_id
    proposal.trade_amount_payer_id = payload.payer_id
    proposal.trade_amount_amount = str(payload.amount if payload.amount is not None else owed)
    proposal.trade_amount_pay_status = "approved"
    proposal.trade_amount_paid_on = now
    proposal.is_payment_received = 1
    proposal.payment_received_on = now
    failure = _commit(db, proposal, "confirm payment for")
    if failure:
        return failure
    logger.info("Payment %s confirmed for trade %s", payload.payment_id, proposal.id)
    return _finish(db, proposal, user_id, "payment-confirmed")

# ============== Shipping and completion ==============

def ship_trade(db: Session, trade_id: int, user_id: int, payload: ShipmentCreate) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, statuses=ACCEPTED_FAMILY)
    if failure:
        return failure
    if payer_role(proposal) is not None and proposal.is_payment_received != 1:
        return ServiceResult.fail("Payment must be received before shipping", 400)

    role = _role(proposal, user_id)
    now = datetime.utcnow()
    shipment = (
        db.query(Shipment)
        .filter(Shipment.trade_id == proposal.id, Shipment.user_id == user_id)
        .first()
    )
    if shipment is None:
        shipment = Shipment(user_id=user_id, trade_id=proposal.id)
        db.add(shipment)
    shipment.tracking_id = payload.tracking_id
    shipment.carrier = payload.carrier
    shipment.selected_rate = payload.selected_rate
    shipment.to_address = payload.to_address
    shipment.from_address = payload.from_address

    if role == SENDER:
        proposal.shipped_by_trade_sent_by = 1
        proposal.shipped_on_by_trade_sent_by = now
    else:
        proposal.shipped_by_trade_sent_to = 1
        proposal.shipped_on_by_trade_sent_to = now

    failure = _commit(db, proposal, "ship")
    if failure:
        return failure
    return _finish(db, proposal, user_id, f"shipped-by-{role}")

def complete_trade(db: Session, trade_id: int, user_id: int, mail: Optional[MailService] = None) -> ServiceResult:
    proposal, failure = _load(db, trade_id, user_id, statuses=ACCEPTED_FAMILY)
    if failure:
        return failure
    if not both_traders_shipped(db, proposal.id, proposal.trade_sent_by, proposal.trade_sent_to):
        return ServiceResult.fail("Both traders must ship before the trade can be completed", 400)

    role = _role(proposal, user_id)
    flag = "trade_sender_confirmation" if role == SENDER else "receiver_confirmation"
    if getattr(proposal, flag) == "1":
        return ServiceResult.fail("You have already marked this trade as completed", 400)
    setattr(proposal, flag, "1")

    completed = proposal.trade_sender_confirmation == "1" and proposal.receiver_confirmation == "1"
    try:
        if completed:
            proposal.trade_status = TradeStatus.complete
            db.flush()
            for party_id in (proposal.trade_sent_by, proposal.trade_sent_to):
                db.execute(_RECOUNT_TRADES_SQL, {"user_id": party_id})
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error completing trade %s", proposal.id)
        return ServiceResult.fail("Failed to complete trade proposal", 500)

    if completed:
        logger.info("Trade %s completed", proposal.id)
        if mail is not None:
            for party in (proposal.sender, proposal.receiver):
                mail.send("trade-completed", {
                    "to": party.email,
                    "name": f"{party.first_name or ''} {party.last_name or ''}".strip(),
                    "trade_code": proposal.code,
                })
    return _finish(db, proposal, user_id, f"marked-trade-completed-by-{role}")

