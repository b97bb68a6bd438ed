import pytest

from cardswap.models.notification import NotificationSetFor, NotificationTemplate, TradeNotification
from cardswap.services.notification import NotificationContext, notify_traders


@pytest.fixture
def offer_template(db):
    template = NotificationTemplate(
        alias="offer-made",
        set_for=NotificationSetFor.Offer,
        to_sender="You made {{receiver_alias}} an offer",
        to_receiver="{{sender_alias}} made you an offer",
    )
    db.add(template)
    db.commit()
    return template


class TestNotificationContext:

    def test_render_replaces_known_placeholders(self):
        context = NotificationContext(sender_alias="alice", receiver_alias="bob", sender_trade_status="Trade sent")

        rendered = context.render("{{sender_alias}} -> {{receiver_alias}}: {{sender_trade_status}}")

        assert rendered == "alice -> bob: Trade sent"

    def test_empty_values_leave_placeholders(self):
        assert NotificationContext().render("Hi {{sender_alias}}") == "Hi {{sender_alias}}"

    def test_missing_message(self):
        assert NotificationContext(sender_alias="alice").render(None) == ""


class TestNotifyTraders:

    def test_offer_notifications_point_at_the_deal(self, db, make_user, offer_template):
        buyer, seller = make_user("buyer"), make_user("seller")
        context = NotificationContext(sender_alias="buyer", receiver_alias="seller")

        written = notify_traders(db, "offer-made", buyer.id, seller.id, 55, NotificationSetFor.Offer, context)

        assert written == 2
        rows = db.query(TradeNotification).order_by(TradeNotification.id).all()
        assert [row.message for row in rows] == ["You made seller an offer", "buyer made you an offer"]
        assert [row.notification_sent_to for row in rows] == [buyer.id, seller.id]
        assert {row.buy_sell_card_id for row in rows} == {55}
        assert {row.trade_proposal_id for row in rows} == {None}

    def test_template_for_another_kind_is_ignored(self, db, make_user, offer_template):
        a, b = make_user(), make_user()

        written = notify_traders(db, "offer-made", a.id, b.id, 1, NotificationSetFor.Trade, NotificationContext())

        assert written == 0
        assert db.query(TradeNotification).count() == 0

    def test_blank_side_is_skipped(self, db, make_user):
        a, b = make_user(), make_user()
        db.add(NotificationTemplate(alias="one-sided", set_for=NotificationSetFor.Trade, to_receiver="Heads up"))
        db.commit()

        written = notify_traders(db, "one-sided", a.id, b.id, 3, NotificationSetFor.Trade, NotificationContext())

        assert written == 1
        assert db.query(TradeNotification).one().notification_sent_to == b.id


class TestNotificationRoutes:

    def test_list_and_mark_seen(self, client, db, make_user, headers_for):
        me, other = make_user(), make_user()
        db.add_all([
            TradeNotification(notification_sent_by=other.id, notification_sent_to=me.id, message="For me"),
            TradeNotification(notification_sent_by=me.id, notification_sent_to=other.id, message="For them"),
        ])
        db.commit()

        listed = client.get("/api/notifications/", headers=headers_for(me))

        rows = listed.json()["data"]
        assert [row["message"] for row in rows] == ["For me"]
        assert rows[0]["seen"] == "0"

        seen = client.post(f"/api/notifications/{rows[0]['id']}/seen", headers=headers_for(me))

        assert seen.json()["data"]["seen"] == "1"

    def test_cannot_mark_someone_elses_notification(self, client, db, make_user, headers_for):
        me, other = make_user(), make_user()
        notification = TradeNotification(notification_sent_by=me.id, notification_sent_to=other.id, message="Theirs")
        db.add(notification)
        db.commit()

        response = client.post(f"/api/notifications/{notification.id}/seen", headers=headers_for(me))

        assert response.status_code == 404
