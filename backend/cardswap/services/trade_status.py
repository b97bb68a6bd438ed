"""Trade proposal status resolver.

Moves a proposal's ``trade_proposal_status_id`` pointer in response to a named
event. Most events advance unconditionally, the "viewed" events only advance
from their matching unseen state, and the completion and shipping events
recurse into a combined event once both parties have acted.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from cardswap.models.trade_proposal import TradeProposal, TradeProposalStatus
from cardswap.models.shipment import Shipment

logger = logging.getLogger(__name__)

UNCONDITIONAL_EVENTS = frozenset({
    "trade-sent",
    "trade-offer-updated",
    "trade-cancelled",
    "trade-accepted",
    "both-traders-shipped",
    "both-marked-trade-completed",
    "counter-trade-offer",
    "counter-offer-accepted",
    "payment-made",
    "payment-confirmed",
    "trade-offer-accepted-receiver-pay",
    "trade-offer-accepted-sender-pay",
    "counter-offer-accepted-receiver-pay",
    "counter-offer-accepted-sender-pay",
})

COMPLETION_EVENTS = frozenset({
    "marked-trade-completed-by-sender",
    "marked-trade-completed-by-receiver",
})

SHIPPING_EVENTS = frozenset({
    "shipped-by-sender",
    "shipped-by-receiver",
})

# event -> alias the proposal must currently be on
VIEW_EVENTS = {
    "trade-viewed": "trade-sent",
    "counter-offer-viewed": "counter-trade-offer",
}

_UPDATE_STATUS_SQL = text(
    "UPDATE trade_proposals SET trade_proposal_status_id = :status_id WHERE id = :id"
)


@dataclass
class StatusResult:
    success: bool
    advanced: bool = False
    alias: Optional[str] = None
    error: Optional[str] = None


def set_trade_proposal_status(db: Session, trade_proposal_id: int, status_alias: str) -> StatusResult:
    """Resolve ``status_alias`` against the proposal's current state.

    Never raises; failures come back as ``StatusResult(success=False)`` so the
    calling operation can carry on.
    """
    try:
        state = _load_state(db, trade_proposal_id)
        if state is None:
            return StatusResult(success=False, error="Trade proposal not found")

        if not _should_advance(state, status_alias):
            logger.debug("Trade %s stays on %s for event %s", trade_proposal_id, state.alias, status_alias)
            return StatusResult(success=True, advanced=False, alias=state.alias)

        status_id = db.execute(
            select(TradeProposalStatus.id).where(TradeProposalStatus.alias == status_alias)
        ).scalar_one_or_none()
        if status_id is None:
            logger.warning("Unknown trade status alias %s for trade %s", status_alias, trade_proposal_id)
            return StatusResult(success=False, alias=state.alias, error=f"Unknown trade status alias: {status_alias}")

        db.execute(_UPDATE_STATUS_SQL, {"status_id": status_id, "id": trade_proposal_id})
        db.commit()
        logger.debug("Trade %s moved to %s", trade_proposal_id, status_alias)

        follow_up = _compound_event(db, trade_proposal_id, state, status_alias)
        if follow_up:
            return set_trade_proposal_status(db, trade_proposal_id, follow_up)
        return StatusResult(success=True, advanced=True, alias=status_alias)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error setting status %s on trade %s", status_alias, trade_proposal_id)
        return StatusResult(success=False, error="Failed to update trade status")


def _load_state(db: Session, trade_proposal_id: int):
    return db.execute(
        select(
            TradeProposal.trade_sent_by.label("sender_id"),
            TradeProposal.trade_sent_to.label("receiver_id"),
            TradeProposal.trade_sender_confirmation.label("sender_confirmation"),
            TradeProposal.receiver_confirmation.label("receiver_confirmation"),
            TradeProposalStatus.alias.label("alias"),
        )
        .outerjoin(TradeProposalStatus, TradeProposal.trade_proposal_status_id == TradeProposalStatus.id)
        .where(TradeProposal.id == trade_proposal_id)
    ).first()


def _should_advance(state, status_alias: str) -> bool:
    if status_alias in UNCONDITIONAL_EVENTS:
        return True
    if status_alias in COMPLETION_EVENTS or status_alias in SHIPPING_EVENTS:
        return True
    if status_alias in VIEW_EVENTS:
        return state.alias == VIEW_EVENTS[status_alias]
    return False


def _compound_event(db: Session, trade_proposal_id: int, state, status_alias: str) -> Optional[str]:
    if status_alias in COMPLETION_EVENTS:
        if state.sender_confirmation == "1" and state.receiver_confirmation == "1":
            return "both-marked-trade-completed"
    elif status_alias in SHIPPING_EVENTS:
        if both_traders_shipped(db, trade_proposal_id, state.sender_id, state.receiver_id):
            return "both-traders-shipped"
    return None


def both_traders_shipped(db: Session, trade_proposal_id: int, sender_id: int, receiver_id: int) -> bool:
    tracking = dict(
        db.execute(
            select(Shipment.user_id, Shipment.tracking_id).where(
                Shipment.trade_id == trade_proposal_id,
                Shipment.user_id.in_([sender_id, receiver_id]),
            )
        ).all()
    )
    return all((tracking.get(user_id) or "").strip() for user_id in (sender_id, receiver_id))
