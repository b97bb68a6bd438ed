import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from cardswap.models.notification import NotificationTemplate, NotificationSetFor, TradeNotification

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class NotificationContext:
    """Values substituted into notification template placeholders."""
    sender_alias: str = ""
    receiver_alias: str = ""
    sender_trade_status: str = ""
    receiver_trade_status: str = ""

    def render(self, message: Optional[str]) -> str:
        if not message:
            return ""
        for key in ("sender_alias", "receiver_alias", "sender_trade_status", "receiver_trade_status"):
            value = getattr(self, key)
            if value:
                message = message.replace("{{" + key + "}}", value)
        return message

def _attach_target(notification: TradeNotification, set_for: NotificationSetFor, data_set_id: int):
    if set_for == NotificationSetFor.Trade:
        notification.trade_proposal_id = data_set_id
    elif set_for == NotificationSetFor.Offer:
        notification.buy_sell_card_id = data_set_id

def notify_traders(
    db: Session,
    act: str,
    sent_by: int,
    sent_to: int,
    data_set_id: int,
    set_for: NotificationSetFor,
    context: NotificationContext,
) -> int:
    """Store the sender and receiver facing messages of template ``act``.

    Returns the number of notifications written. Errors are logged and
    swallowed so the triggering action is never undone by them.
    """
    try:
        template = (
            db.query(NotificationTemplate)
            .filter(NotificationTemplate.alias == act, NotificationTemplate.set_for == set_for)
            .first()
        )
        if template is None or not (template.to_sender or template.to_receiver):
            logger.debug("No notification template %s for %s", act, set_for.value)
            return 0

        written = 0
        # (message, from, to): the sender facing text goes back to the sender
        for message, from_id, to_id in (
            (context.render(template.to_sender), sent_to, sent_by),
            (context.render(template.to_receiver), sent_by, sent_to),
        ):
            if not message.strip():
                continue
            notification = TradeNotification(
                notification_sent_by=from_id,
                notification_sent_to=to_id,
                message=message,
            )
            _attach_target(notification, set_for, data_set_id)
            db.add(notification)
            written += 1

        db.commit()
        return written
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating %s notifications for %s", act, data_set_id)
        return 0

def list_notifications(db: Session, user_id: int, page: int, per_page: int):
    query = db.query(TradeNotification).filter(TradeNotification.notification_sent_to == user_id)
    total = query.count()
    rows = (
        query.order_by(TradeNotification.created_at.desc(), TradeNotification.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return rows, total

def mark_seen(db: Session, notification_id: int, user_id: int) -> Optional[TradeNotification]:
    notification = (
        db.query(TradeNotification)
        .filter(TradeNotification.id == notification_id, TradeNotification.notification_sent_to == user_id)
        .first()
    )
    if notification is None:
        return None
    notification.seen = "1"
    db.commit()
    db.refresh(notification)
    return notification
