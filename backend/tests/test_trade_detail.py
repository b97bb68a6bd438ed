"""Tests for the trade detail view: cash labels, available actions and completion state."""
from datetime import datetime

import pytest

from cardswap.models.shipment import Shipment
from cardswap.models.trade_proposal import TradeProposal, TradeStatus
from cardswap.services.trade_detail import cash_breakdown, completion_status, determine_trade_actions

SENDER_ID = 1
RECEIVER_ID = 2


def build_proposal(**fields):
    values = dict(
        id=42,
        trade_sent_by=SENDER_ID,
        trade_sent_to=RECEIVER_ID,
        ask_cash=0,
        add_cash=0,
        trade_status=TradeStatus.new,
        trade_amount_paid_on=None,
        is_payment_received=0,
        trade_sender_confirmation="0",
        receiver_confirmation="0",
    )
    values.update(fields)
    return TradeProposal(**values)


def shipped_both():
    return [Shipment(user_id=SENDER_ID, tracking_id="S-1"), Shipment(user_id=RECEIVER_ID, tracking_id="R-1")]


def action_types(actions):
    return [action["type"] for action in actions]


class TestCashBreakdown:

    @pytest.mark.parametrize("field,paid,viewer,label,flag", [
        ("ask_cash", False, SENDER_ID, "Amount you get", False),
        ("ask_cash", False, RECEIVER_ID, "Amount you pay", True),
        ("ask_cash", True, SENDER_ID, "Amount you got", False),
        ("ask_cash", True, RECEIVER_ID, "Amount you paid", True),
        ("add_cash", False, SENDER_ID, "Amount you pay", True),
        ("add_cash", False, RECEIVER_ID, "Amount you get", False),
        ("add_cash", True, SENDER_ID, "Amount you paid", True),
        ("add_cash", True, RECEIVER_ID, "Amount you got", False),
    ])
    def test_label_depends_on_role_and_payment(self, field, paid, viewer, label, flag):
        proposal = build_proposal(**{field: 50, "trade_amount_paid_on": datetime(2024, 5, 1) if paid else None})

        cash_info, ask_for_cash_flag = cash_breakdown(proposal, viewer)

        assert cash_info[field] == {"label": label, "amount": 50}
        assert ask_for_cash_flag is flag

    def test_zero_amounts_are_omitted(self):
        cash_info, ask_for_cash_flag = cash_breakdown(build_proposal(), SENDER_ID)

        assert cash_info == {}
        assert ask_for_cash_flag is False


class TestAvailableActions:

    def test_new_trade_without_cash_for_receiver(self):
        actions = determine_trade_actions(build_proposal(), RECEIVER_ID, [], False)

        assert action_types(actions) == ["review", "accept", "decline", "counter"]
        assert actions[0]["url"] == "/review-trade-proposal/42"
        assert actions[3]["url"] == "/counter-trade-proposal/42"

    def test_new_trade_with_ask_cash_offers_accept_and_pay(self):
        actions = determine_trade_actions(build_proposal(ask_cash=30), RECEIVER_ID, [], True)

        assert action_types(actions) == ["review", "accept_and_pay", "decline", "counter"]
        assert actions[1]["amount"] == 30
        assert actions[1]["label"] == "Accept & Pay"

    def test_new_trade_gives_sender_nothing(self):
        assert determine_trade_actions(build_proposal(), SENDER_ID, [], False) == []

    def test_counter_offer_for_sender_with_add_cash(self):
        proposal = build_proposal(trade_status=TradeStatus.counter_offer, add_cash=12)

        actions = determine_trade_actions(proposal, SENDER_ID, [], True)

        assert action_types(actions) == ["accept_counter_and_pay", "decline_counter"]
        assert actions[0]["amount"] == 12

    def test_counter_offer_for_receiver(self):
        proposal = build_proposal(trade_status=TradeStatus.counter_offer)

        actions = determine_trade_actions(proposal, RECEIVER_ID, [], False)

        assert actions == [{"type": "cancel_counter", "label": "Cancel Offer", "icon": "fa-ban"}]

    def test_accepted_with_unpaid_add_cash_asks_sender_to_pay(self):
        proposal = build_proposal(trade_status=TradeStatus.accepted, add_cash=20)

        actions = determine_trade_actions(proposal, SENDER_ID, [], True)

        assert action_types(actions) == ["pay_to_continue"]
        assert actions[0]["amount"] == 20
        assert actions[0]["icon"] == "ri-checkbox-circle-line"

    def test_counter_accepted_with_unpaid_ask_cash_asks_receiver_to_pay(self):
        proposal = build_proposal(trade_status=TradeStatus.counter_accepted, ask_cash=8)

        assert action_types(determine_trade_actions(proposal, RECEIVER_ID, [], True)) == ["pay_to_continue"]
        assert action_types(determine_trade_actions(proposal, SENDER_ID, [], False)) == []

    @pytest.mark.parametrize("status", [TradeStatus.accepted, TradeStatus.counter_accepted])
    def test_pay_action_follows_the_cash_payer(self, status):
        asks = build_proposal(trade_status=status, ask_cash=10)
        adds = build_proposal(trade_status=status, add_cash=5)

        assert determine_trade_actions(asks, RECEIVER_ID, [], True)[0]["amount"] == 10
        assert action_types(determine_trade_actions(asks, SENDER_ID, [], False)) == []
        assert determine_trade_actions(adds, SENDER_ID, [], True)[0]["amount"] == 5
        assert action_types(determine_trade_actions(adds, RECEIVER_ID, [], False)) == []

    def test_accepted_without_cash_offers_shipping(self):
        proposal = build_proposal(trade_status=TradeStatus.accepted)

        actions = determine_trade_actions(proposal, SENDER_ID, [], False)

        assert actions == [{
            "type": "ship_products",
            "label": "Ship Product(s)",
            "url": "/trade/shipping-address",
            "icon": "fa-truck-fast",
        }]

    def test_payee_can_ship_once_payment_received(self):
        proposal = build_proposal(
            trade_status=TradeStatus.accepted, add_cash=20,
            trade_amount_paid_on=datetime(2024, 5, 1), is_payment_received=1,
        )

        assert action_types(determine_trade_actions(proposal, RECEIVER_ID, [], False)) == ["ship_products"]

    def test_both_shipped_and_unconfirmed_offers_completion(self):
        proposal = build_proposal(trade_status=TradeStatus.accepted)

        actions = determine_trade_actions(proposal, SENDER_ID, shipped_both(), False)

        assert action_types(actions) == ["complete_trade"]
        assert actions[0]["icon"] == "complete_trade_proposal_check"

    def test_one_confirmation_waits_for_other_party(self):
        proposal = build_proposal(trade_status=TradeStatus.accepted, receiver_confirmation="1")

        actions = determine_trade_actions(proposal, SENDER_ID, shipped_both(), False)

        assert actions == [{
            "type": "waiting_confirmation",
            "label": "Waiting for Other Party Confirmation",
            "icon": "ri-eye-line",
        }]

    def test_complete_trade_with_both_confirmations(self):
        proposal = build_proposal(
            trade_status=TradeStatus.complete, trade_sender_confirmation="1", receiver_confirmation="1",
        )

        actions = determine_trade_actions(proposal, RECEIVER_ID, shipped_both(), False)

        assert actions == [{
            "type": "trade_completed",
            "label": "Trade Marked Completed",
            "icon": "fa-check-double",
            "disabled": True,
        }]

    @pytest.mark.parametrize("status,label", [
        (TradeStatus.cancel, "This trade was cancelled"),
        (TradeStatus.declined, "This trade was declined"),
    ])
    def test_closed_trades_are_disabled(self, status, label):
        actions = determine_trade_actions(build_proposal(trade_status=status), SENDER_ID, [], False)

        assert actions == [{"type": "trade_cancelled", "label": label, "disabled": True}]

    def test_other_statuses_let_sender_edit_or_cancel(self):
        proposal = build_proposal(trade_status=TradeStatus.counter_declined)

        actions = determine_trade_actions(proposal, SENDER_ID, [], False)

        assert action_types(actions) == ["edit_trade", "cancel_trade"]
        assert actions[0]["url"] == "/edit-trade-proposal/42"
        assert determine_trade_actions(proposal, RECEIVER_ID, [], False) == []


class TestCompletionStatus:

    def test_can_complete_when_both_shipped_and_nobody_confirmed(self):
        status = completion_status(build_proposal(trade_status=TradeStatus.accepted), SENDER_ID, shipped_both())

        assert status["can_complete_trade"] is True
        assert status["marked_as_completed"] is False

    def test_single_confirmation_counts_as_marked(self):
        proposal = build_proposal(trade_status=TradeStatus.accepted, trade_sender_confirmation="1")

        status = completion_status(proposal, RECEIVER_ID, shipped_both())

        assert status["marked_as_completed"] is True
        assert status["can_complete_trade"] is False
        assert status["sender_confirmed"] is True
        assert status["receiver_confirmed"] is False

    def test_cannot_complete_before_partner_ships(self):
        shipments = [Shipment(user_id=SENDER_ID, tracking_id="S-1"), Shipment(user_id=RECEIVER_ID, tracking_id="")]

        status = completion_status(build_proposal(trade_status=TradeStatus.accepted), SENDER_ID, shipments)

        assert status["can_complete_trade"] is False


class TestTradeDetailEndpoint:

    def test_receiver_view_marks_trade_viewed(self, client, db, make_user, make_card, make_proposal, alias_of, headers_for):
        sender, receiver = make_user(), make_user()
        offered = make_card(sender, "Offered")
        wanted = make_card(receiver, "Wanted")
        proposal = make_proposal(sender, receiver, send_cards=[offered.id], receive_cards=[wanted.id], ask_cash=50)

        response = client.get(f"/api/trade-detail?trade_id={proposal.id}", headers=headers_for(receiver))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] is True
        data = body["data"]
        assert data["cash_info"]["ask_cash"] == {"label": "Amount you pay", "amount": 50.0}
        assert data["payment_status"]["ask_for_cash_flag"] is True
        assert [p["id"] for p in data["your_products"]] == [wanted.id]
        assert [p["id"] for p in data["their_products"]] == [offered.id]
        assert data["trading_partner"]["id"] == sender.id
        assert data["trade_proposal"]["trade_sender_confrimation"] == "0"
        assert "accept_and_pay" in action_types(data["available_actions"])
        assert alias_of(proposal.id) == "trade-viewed"

    def test_sender_view_shows_amount_to_get(self, client, make_user, make_card, make_proposal, headers_for):
        sender, receiver = make_user(), make_user()
        wanted = make_card(receiver, "Wanted")
        proposal = make_proposal(sender, receiver, receive_cards=[wanted.id], ask_cash=50)

        response = client.get(f"/api/trade-detail?trade_id={proposal.id}", headers=headers_for(sender))

        data = response.json()["data"]
        assert data["cash_info"]["ask_cash"]["label"] == "Amount you get"
        assert data["payment_status"]["ask_for_cash_flag"] is False

    def test_outsider_is_forbidden(self, client, make_user, make_proposal, headers_for):
        sender, receiver, outsider = make_user(), make_user(), make_user()
        proposal = make_proposal(sender, receiver)

        response = client.get(f"/api/trade-detail?trade_id={proposal.id}", headers=headers_for(outsider))

        assert response.status_code == 403
        assert response.json()["status"] is False

    def test_unknown_trade_is_not_found(self, client, make_user, headers_for):
        response = client.get("/api/trade-detail?trade_id=999", headers=headers_for(make_user()))

        assert response.status_code == 404
        assert response.json()["message"] == "Trade proposal not found"
