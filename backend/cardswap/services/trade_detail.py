"""Presentation view of a single trade proposal for one of its two parties."""
import logging
from typing import Optional
from sqlalchemy.orm import Session, joinedload
from cardswap.models.trade_proposal import TradeProposal, TradeStatus
from cardswap.models.trading_card import TradingCard
from cardswap.models.shipment import Shipment
from cardswap.services.result import ServiceResult
from cardswap.services.trade_proposal import SENDER, payer_role
from cardswap.services.trade_status import set_trade_proposal_status

logger = logging.getLogger(__name__)

PAY_ICON = "ri-checkbox-circle-line"

# (field, paid, viewer is sender) -> (label, viewer is the payer)
_CASH_LABELS = {
    ("ask_cash", False, True): ("Amount you get", False),
    ("ask_cash", False, False): ("Amount you pay", True),
    ("ask_cash", True, True): ("Amount you got", False),
    ("ask_cash", True, False): ("Amount you paid", True),
    ("add_cash", False, True): ("Amount you pay", True),
    ("add_cash", False, False): ("Amount you get", False),
    ("add_cash", True, True): ("Amount you paid", True),
    ("add_cash", True, False): ("Amount you got", False),
}


def cash_breakdown(proposal: TradeProposal, viewer_id: int):
    """Return ``(cash_info, ask_for_cash_flag)`` for the viewer.

    ``ask_cash`` flows from the receiver to the sender and ``add_cash`` from
    the sender to the receiver; the flag is set when the viewer is the payer
    of any non-zero amount.
    """
    is_paid = proposal.trade_amount_paid_on is not None
    is_sender = viewer_id == proposal.trade_sent_by
    cash_info = {}
    ask_for_cash_flag = False

    for field in ("ask_cash", "add_cash"):
        amount = getattr(proposal, field) or 0
        if amount <= 0:
            continue
        label, viewer_pays = _CASH_LABELS[(field, is_paid, is_sender)]
        cash_info[field] = {"label": label, "amount": amount}
        ask_for_cash_flag = ask_for_cash_flag or viewer_pays

    return cash_info, ask_for_cash_flag


def _split_shipments(shipments, viewer_id: int):
    user_shipment = next((s for s in shipments if s.user_id == viewer_id), None)
    partner_shipment = next((s for s in shipments if s.user_id != viewer_id), None)
    return user_shipment, partner_shipment


def _fulfilled(shipment: Optional[Shipment]) -> bool:
    return shipment is not None and shipment.is_fulfilled


def _completion_action(sender_confirmed: bool, receiver_confirmed: bool) -> dict:
    if sender_confirmed and receiver_confirmed:
        return {
            "type": "trade_completed",
            "label": "Trade Marked Completed",
            "icon": "fa-check-double",
            "disabled": True,
        }
    return {
        "type": "waiting_confirmation",
        "label": "Waiting for Other Party Confirmation",
        "icon": "ri-eye-line",
    }


def determine_trade_actions(proposal: TradeProposal, viewer_id: int, shipments, ask_for_cash_flag: bool) -> list:
    actions = []
    is_sender = viewer_id == proposal.trade_sent_by
    is_receiver = viewer_id == proposal.trade_sent_to
    ask_cash = proposal.ask_cash or 0
    add_cash = proposal.add_cash or 0
    status = proposal.trade_status
    user_shipment, partner_shipment = _split_shipments(shipments, viewer_id)

    if status == TradeStatus.new:
        if is_receiver:
            actions.append({
                "type": "review",
                "label": "Review Trade",
                "url": f"/review-trade-proposal/{proposal.id}",
                "icon": "fa-search",
            })
            if ask_cash > 0:
                actions.append({"type": "accept_and_pay", "label": "Accept & Pay", "amount": ask_cash, "icon": "fa-check"})
            else:
                actions.append({"type": "accept", "label": "Accept Trade", "icon": "fa-check"})
            actions.append({"type": "decline", "label": "Decline Trade", "icon": "fa-ban"})
            actions.append({
                "type": "counter",
                "label": "Counter Trade",
                "url": f"/counter-trade-proposal/{proposal.id}",
                "icon": "fa-dollar",
            })

    elif status == TradeStatus.counter_offer:
        if is_sender:
            if add_cash > 0:
                actions.append({
                    "type": "accept_counter_and_pay",
                    "label": "Accept Counter Offer",
                    "amount": add_cash,
                    "icon": PAY_ICON,
                })
            else:
                actions.append({"type": "accept_counter", "label": "Accept Counter Offer", "icon": PAY_ICON})
            actions.append({"type": "decline_counter", "label": "Decline Counter Offer", "icon": "fa-ban"})
        else:
            actions.append({"type": "cancel_counter", "label": "Cancel Offer", "icon": "fa-ban"})

    elif status in (TradeStatus.accepted, TradeStatus.counter_accepted):
        payer = payer_role(proposal)
        if payer is not None and proposal.trade_amount_paid_on is None:
            if (payer == SENDER) == is_sender:
                amount = add_cash if payer == SENDER else ask_cash
                actions.append({"type": "pay_to_continue", "label": "Pay to Continue Trade", "amount": amount, "icon": PAY_ICON})

        if not _fulfilled(user_shipment):
            payment_settled = not ask_for_cash_flag and proposal.is_payment_received == 1
            if payment_settled or (ask_cash == 0 and add_cash == 0):
                actions.append({
                    "type": "ship_products",
                    "label": "Ship Product(s)",
                    "url": "/trade/shipping-address",
                    "icon": "fa-truck-fast",
                })

        if _fulfilled(user_shipment) and _fulfilled(partner_shipment):
            sender_confirmed = proposal.trade_sender_confirmation == "1"
            receiver_confirmed = proposal.receiver_confirmation == "1"
            if not sender_confirmed and not receiver_confirmed:
                actions.append({"type": "complete_trade", "label": "Complete Trade", "icon": "complete_trade_proposal_check"})
            else:
                actions.append(_completion_action(sender_confirmed, receiver_confirmed))

    elif status == TradeStatus.complete:
        actions.append(_completion_action(
            proposal.trade_sender_confirmation == "1",
            proposal.receiver_confirmation == "1",
        ))

    elif status in (TradeStatus.cancel, TradeStatus.declined):
        label = "This trade was cancelled" if status == TradeStatus.cancel else "This trade was declined"
        actions.append({"type": "trade_cancelled", "label": label, "disabled": True})

    else:
        if is_sender:
            actions.append({
                "type": "edit_trade",
                "label": "Edit Trade",
                "url": f"/edit-trade-proposal/{proposal.id}",
                "icon": "ri-edit-line",
            })
            actions.append({"type": "cancel_trade", "label": "Cancel Trade", "icon": "fa-ban"})

    return actions


def completion_status(proposal: TradeProposal, viewer_id: int, shipments) -> dict:
    sender_confirmed = proposal.trade_sender_confirmation == "1"
    receiver_confirmed = proposal.receiver_confirmation == "1"
    # Either side having confirmed counts as marked; see DESIGN.md open questions
    marked_as_completed = sender_confirmed or receiver_confirmed

    user_shipment, partner_shipment = _split_shipments(shipments, viewer_id)
    can_complete_trade = False
    if _fulfilled(user_shipment) and _fulfilled(partner_shipment) and proposal.trade_status != TradeStatus.complete:
        can_complete_trade = not marked_as_completed

    return {
        "can_complete_trade": can_complete_trade,
        "marked_as_completed": marked_as_completed,
        "sender_confirmed": sender_confirmed,
        "receiver_confirmed": receiver_confirmed,
    }


def _product_view(card: TradingCard) -> dict:
    return {
        "id": card.id,
        "search_param": card.search_param,
        "estimated_value": card.trading_card_estimated_value,
        "category": card.category.sport_name if card.category else None,
    }


def _load_cards(db: Session, card_ids):
    if not card_ids:
        return []
    return (
        db.query(TradingCard)
        .options(joinedload(TradingCard.category))
        .filter(TradingCard.id.in_(card_ids))
        .all()
    )


def _user_view(user) -> dict:
    return {
        "id": user.id if user else None,
        "username": user.username if user else None,
        "profile_picture": user.profile_picture if user else None,
    }


def get_trade_detail(db: Session, trade_id: int, viewer_id: int) -> ServiceResult:
    proposal = db.query(TradeProposal).filter(TradeProposal.id == trade_id).first()
    if proposal is None:
        return ServiceResult.fail("Trade proposal not found", 404)
    if viewer_id not in (proposal.trade_sent_by, proposal.trade_sent_to):
        return ServiceResult.fail("You are not a party to this trade", 403)

    # Opening the detail marks an unseen offer as viewed
    for event in ("trade-viewed", "counter-offer-viewed"):
        outcome = set_trade_proposal_status(db, proposal.id, event)
        if not outcome.success:
            logger.warning("Could not mark trade %s with %s: %s", proposal.id, event, outcome.error)

    # The resolver commits, so reload what it may have changed
    db.refresh(proposal)

    is_sender = viewer_id == proposal.trade_sent_by
    own_ids = proposal.send_card_ids if is_sender else proposal.receive_card_ids
    their_ids = proposal.receive_card_ids if is_sender else proposal.send_card_ids

    shipments = (
        db.query(Shipment)
        .options(joinedload(Shipment.user))
        .filter(Shipment.trade_id == proposal.id)
        .all()
    )
    partner = proposal.receiver if is_sender else proposal.sender

    cash_info, ask_for_cash_flag = cash_breakdown(proposal, viewer_id)
    actions = determine_trade_actions(proposal, viewer_id, shipments, ask_for_cash_flag)
    status_row = proposal.proposal_status

    data = {
        "trade_proposal": {
            "id": proposal.id,
            "code": proposal.code,
            "trade_status": proposal.trade_status.value,
            "status_alias": status_row.alias if status_row else None,
            "status_text": (status_row.to_sender if is_sender else status_row.to_receiver) if status_row else None,
            "trade_sent_by": proposal.trade_sent_by,
            "trade_sent_to": proposal.trade_sent_to,
            "message": proposal.message,
            "counter_personalized_message": proposal.counter_personalized_message,
            "trade_amount_paid_on": proposal.trade_amount_paid_on,
            "is_payment_received": proposal.is_payment_received,
            "trade_sender_confrimation": proposal.trade_sender_confirmation,
            "receiver_confirmation": proposal.receiver_confirmation,
            "accepted_on": proposal.accepted_on,
            "created_at": proposal.created_at,
        },
        "trading_partner": _user_view(partner),
        "your_products": [_product_view(card) for card in _load_cards(db, own_ids)],
        "their_products": [_product_view(card) for card in _load_cards(db, their_ids)],
        "cash_info": cash_info,
        "payment_status": {
            "is_paid": proposal.trade_amount_paid_on is not None,
            "paid_on": proposal.trade_amount_paid_on,
            "ask_for_cash_flag": ask_for_cash_flag,
        },
        "shipments": [
            {
                "id": shipment.id,
                "user_id": shipment.user_id,
                "tracking_id": shipment.tracking_id,
                "shipment_status": shipment.shipment_status,
                "payment_id": shipment.paymentId,
                "selected_rate": shipment.selected_rate,
                "shipment_payment_status": shipment.shipment_payment_status,
                "user": _user_view(shipment.user),
            }
            for shipment in shipments
        ],
        "completion_status": completion_status(proposal, viewer_id, shipments),
        "available_actions": actions,
    }
    return ServiceResult.ok(data)
