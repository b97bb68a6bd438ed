from sqlalchemy import Column, Integer, String, Float, Enum, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from cardswap.database import Base
import enum

class TradeStatus(str, enum.Enum):
    new = "new"
    accepted = "accepted"
    declined = "declined"
    cancel = "cancel"
    counter_offer = "counter_offer"
    counter_accepted = "counter_accepted"
    counter_declined = "counter_declined"
    complete = "complete"

ACCEPTED_FAMILY = (TradeStatus.accepted, TradeStatus.counter_accepted)

class TradeProposalStatus(Base):
    __tablename__ = "trade_proposal_statuses"

    id = Column(Integer, primary_key=True, index=True)
    alias = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    to_sender = Column(String(255), nullable=True)
    to_receiver = Column(String(255), nullable=True)
    status = Column(String(1), nullable=False, default="1")

class TradeProposal(Base):
    __tablename__ = "trade_proposals"
    __table_args__ = (
        CheckConstraint("trade_sent_by <> trade_sent_to", name="ck_trade_proposals_distinct_parties"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(30), nullable=True)
    trade_sent_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    trade_sent_to = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    main_card = Column(Integer, nullable=True)
    send_cards = Column(String(255), nullable=True)  # comma separated trading card ids
    receive_cards = Column(String(255), nullable=True)
    add_cash = Column(Float, nullable=False, default=0)
    ask_cash = Column(Float, nullable=False, default=0)
    message = Column(Text, nullable=True)
    counter_personalized_message = Column(Text, nullable=True)
    counter_offer = Column(String(1), nullable=True)
    is_new = Column(String(1), nullable=False, default="1")
    is_edited = Column(Integer, nullable=False, default=0)
    trade_status = Column(Enum(TradeStatus), nullable=False, default=TradeStatus.new)
    accepted_on = Column(DateTime, nullable=True)

    # Payment
    trade_amount_paid_on = Column(DateTime, nullable=True)
    trade_amount_pay_id = Column(String(255), nullable=True)
    trade_amount_payer_id = Column(String(255), nullable=True)
    trade_amount_amount = Column(String(255), nullable=True)
    trade_amount_pay_status = Column(String(255), nullable=True)
    is_payment_init = Column(Integer, nullable=False, default=0)
    payment_init_date = Column(DateTime, nullable=True)
    is_payment_received = Column(Integer, nullable=False, default=0)
    payment_received_on = Column(DateTime, nullable=True)

    # Shipping
    shipped_by_trade_sent_by = Column(Integer, nullable=False, default=0)
    shipped_on_by_trade_sent_by = Column(DateTime, nullable=True)
    shipped_by_trade_sent_to = Column(Integer, nullable=False, default=0)
    shipped_on_by_trade_sent_to = Column(DateTime, nullable=True)

    # Completion; the column keeps its historical spelling
    trade_sender_confirmation = Column("trade_sender_confrimation", String(1), nullable=False, default="0")
    receiver_confirmation = Column(String(1), nullable=False, default="0")

    trade_proposal_status_id = Column(Integer, ForeignKey("trade_proposal_statuses.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    sender = relationship("User", foreign_keys=[trade_sent_by])
    receiver = relationship("User", foreign_keys=[trade_sent_to])
    proposal_status = relationship("TradeProposalStatus")

    @property
    def send_card_ids(self):
        return parse_card_ids(self.send_cards)

    @property
    def receive_card_ids(self):
        return parse_card_ids(self.receive_cards)

def parse_card_ids(value):
    if not value:
        return []
    return [int(part) for part in value.split(",") if part.strip()]

def join_card_ids(ids):
    return ",".join(str(card_id) for card_id in ids)
