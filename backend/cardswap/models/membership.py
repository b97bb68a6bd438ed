from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, Enum, Text
from datetime import datetime
from cardswap.database import Base
import enum

class TransactionType(str, enum.Enum):
    purchase = "Purchase"
    dlx_redemption = "DLX Redemption"
    listing_fee = "Listing Fee"
    earned_credit = "Earned Credit"

class Membership(Base):
    __tablename__ = "membership"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=True)
    price = Column(Float, nullable=False, default=0)
    type = Column(String(50), nullable=False, default="Free")
    status = Column(String(1), nullable=False, default="1")

class MembershipUser(Base):
    __tablename__ = "membership_user"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    membership_id = Column(Integer, ForeignKey("membership.id"), nullable=False)
    expired_date = Column(Date, nullable=True)
    type = Column(String(50), nullable=False, default="Free")
    status = Column(String(1), nullable=False, default="1")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    payment_id = Column(String(255), nullable=True)
    amount = Column(Float, nullable=True)
    type = Column(Enum(TransactionType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    note = Column(Text, nullable=True)
    status = Column(String(1), nullable=False, default="1")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

class EarnCredit(Base):
    __tablename__ = "earn_credits"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(100), nullable=False)
    title = Column(String(255), nullable=True)
    amount = Column(Float, nullable=False, default=0)
    status = Column(String(1), nullable=False, default="1")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

class CreditDeductionLog(Base):
    __tablename__ = "credit_deduction_logs"

    id = Column(Integer, primary_key=True, index=True)
    trade_id = Column(Integer, ForeignKey("trade_proposals.id"), nullable=True)
    buy_sell_id = Column(Integer, ForeignKey("buy_sell_cards.id"), nullable=True)
    # Cart rows are deleted at checkout, so this is not a foreign key
    cart_detail_id = Column(Integer, nullable=True)
    trade_status = Column(String(50), nullable=True)
    sent_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    sent_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    coin = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="Success")
    deduction_from = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
