from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from datetime import datetime
from cardswap.database import Base
import enum

class NotificationSetFor(str, enum.Enum):
    Trade = "Trade"
    Offer = "Offer"
    Shipping = "Shipping"
    Payment = "Payment"
    Default = "Default"

class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id = Column(Integer, primary_key=True, index=True)
    alias = Column(String(255), index=True, nullable=False)
    title = Column(String(255), nullable=True)
    to_sender = Column(Text, nullable=True)
    to_receiver = Column(Text, nullable=True)
    status = Column(String(1), nullable=False, default="1")
    set_for = Column(Enum(NotificationSetFor), nullable=False, default=NotificationSetFor.Default)

class TradeNotification(Base):
    __tablename__ = "trade_notification"

    id = Column(Integer, primary_key=True, index=True)
    notification_sent_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    notification_sent_to = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    trade_proposal_id = Column(Integer, ForeignKey("trade_proposals.id"), nullable=True)
    buy_sell_card_id = Column(Integer, ForeignKey("buy_sell_cards.id"), nullable=True)
    message = Column(Text, nullable=True)
    seen = Column(String(1), nullable=False, default="0")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
