"""Tests for the trade proposal status resolver."""
from datetime import datetime

from cardswap.models.trade_proposal import TradeProposal, TradeProposalStatus
from cardswap.services.trade_status import set_trade_proposal_status, both_traders_shipped


class TestViewedEvents:

    def test_trade_viewed_advances_from_trade_sent(self, db, make_user, make_proposal, alias_of):
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(sender, receiver, alias="trade-sent")

        result = set_trade_proposal_status(db, proposal.id, "trade-viewed")

        assert result.success is True
        assert result.advanced is True
        assert alias_of(proposal.id) == "trade-viewed"

    def test_trade_viewed_is_ignored_for_other_aliases(self, db, make_user, make_proposal, alias_of):
        """Viewing an already accepted trade must not move the pointer back."""
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(sender, receiver, alias="trade-accepted")

        result = set_trade_proposal_status(db, proposal.id, "trade-viewed")

        assert result.success is True
        assert result.advanced is False
        assert result.alias == "trade-accepted"
        assert alias_of(proposal.id) == "trade-accepted"

    def test_counter_offer_viewed_requires_counter_trade_offer(self, db, make_user, make_proposal, alias_of):
        sender, receiver = make_user(), make_user()
        pending = make_proposal(sender, receiver, alias="counter-trade-offer")
        other = make_proposal(sender, receiver, alias="trade-sent")

        set_trade_proposal_status(db, pending.id, "counter-offer-viewed")
        set_trade_proposal_status(db, other.id, "counter-offer-viewed")

        assert alias_of(pending.id) == "counter-offer-viewed"
        assert alias_of(other.id) == "trade-sent"


class TestUnconditionalEvents:

    def test_unconditional_event_is_idempotent(self, db, make_user, make_proposal, alias_of):
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(sender, receiver, alias="trade-sent")

        first = set_trade_proposal_status(db, proposal.id, "payment-made")
        second = set_trade_proposal_status(db, proposal.id, "payment-made")

        assert first.success and second.success
        assert alias_of(proposal.id) == "payment-made"

    def test_only_the_status_pointer_is_written(self, db, make_user, make_proposal, alias_of):
        sender, receiver = make_user(), make_user()
        stamp = datetime(2024, 1, 2, 3, 4, 5)
        proposal = make_proposal(sender, receiver, alias="trade-sent", ask_cash=15, message="hello")
        db.query(TradeProposal).filter(TradeProposal.id == proposal.id).update({"updated_at": stamp})
        db.commit()

        set_trade_proposal_status(db, proposal.id, "trade-accepted")

        db.expire_all()
        reloaded = db.get(TradeProposal, proposal.id)
        assert reloaded.updated_at == stamp
        assert reloaded.ask_cash == 15
        assert reloaded.message == "hello"

    def test_unknown_event_is_a_no_op(self, db, make_user, make_proposal, alias_of):
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(sender, receiver, alias="trade-sent")

        result = set_trade_proposal_status(db, proposal.id, "something-else")

        assert result.success is True
        assert result.advanced is False
        assert alias_of(proposal.id) == "trade-sent"


class TestFailures:

    def test_missing_proposal_reports_failure(self, db):
        result = set_trade_proposal_status(db, 9999, "trade-sent")

        assert result.success is False
        assert result.error == "Trade proposal not found"

    def test_alias_missing_from_lookup_table_skips_write(self, db, make_user, make_proposal, alias_of):
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(sender, receiver, alias="trade-sent")
        db.query(TradeProposal).filter(TradeProposal.id == proposal.id).update({"trade_proposal_status_id": None})
        db.commit()
        db.query(TradeProposalStatus).filter(TradeProposalStatus.alias == "payment-confirmed").delete()
        db.commit()

        result = set_trade_proposal_status(db, proposal.id, "payment-confirmed")

        assert result.success is False
        assert alias_of(proposal.id) is None


class TestCompoundEvents:

    def test_both_shipped_resolves_to_both_traders_shipped(self, db, make_user, make_proposal, make_shipment, alias_of):
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(sender, receiver, alias="trade-accepted")
        make_shipment(proposal, sender, "TRACK-S")
        make_shipment(proposal, receiver, "TRACK-R")

        result = set_trade_proposal_status(db, proposal.id, "shipped-by-receiver")

        assert result.success is True
        assert alias_of(proposal.id) == "both-traders-shipped"

    def test_single_shipment_keeps_own_alias(self, db, make_user, make_proposal, make_shipment, alias_of):
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(sender, receiver, alias="trade-accepted")
        make_shipment(proposal, sender, "TRACK-S")
        make_shipment(proposal, receiver, "   ")

        set_trade_proposal_status(db, proposal.id, "shipped-by-sender")

        assert alias_of(proposal.id) == "shipped-by-sender"
        assert both_traders_shipped(db, proposal.id, sender.id, receiver.id) is False

    def test_both_confirmations_resolve_to_both_marked(self, db, make_user, make_proposal, alias_of):
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(
            sender, receiver, alias="both-traders-shipped",
            trade_sender_confirmation="1", receiver_confirmation="1",
        )

        set_trade_proposal_status(db, proposal.id, "marked-trade-completed-by-receiver")

        assert alias_of(proposal.id) == "both-marked-trade-completed"

    def test_one_confirmation_keeps_own_alias(self, db, make_user, make_proposal, alias_of):
        sender, receiver = make_user(), make_user()
        proposal = make_proposal(
            sender, receiver, alias="both-traders-shipped",
            trade_sender_confirmation="1", receiver_confirmation="0",
        )

        set_trade_proposal_status(db, proposal.id, "marked-trade-completed-by-sender")

        assert alias_of(proposal.id) == "marked-trade-completed-by-sender"
