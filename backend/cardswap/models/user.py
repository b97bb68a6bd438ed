from sqlalchemy import Column, Integer, String, Enum, DateTime, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from cardswap.database import Base
import enum

class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    phone_number = Column(String(20), nullable=True)
    country_code = Column(String(10), nullable=True)
    profile_picture = Column(String(255), nullable=True)
    paypal_business_email = Column(String(255), nullable=True)
    user_role = Column(Enum(UserRole), nullable=False, default=UserRole.user)
    user_status = Column(String(1), nullable=False, default="1")
    is_email_verified = Column(String(1), nullable=False, default="0")
    email_verified_at = Column(DateTime, nullable=True)

    cxp_coins = Column(Integer, nullable=False, default=0)
    credit = Column(Float, nullable=False, default=0)

    # Denormalized counters, recomputed by side-effect queries
    ratings = Column(String(10), nullable=True)
    followers = Column(Integer, nullable=False, default=0)
    trade_transactions = Column(Integer, nullable=False, default=0)
    trading_cards = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    support_tickets = relationship("Support", back_populates="user")
    shipments = relationship("Shipment", back_populates="user")

class Follower(Base):
    __tablename__ = "followers"
    __table_args__ = (UniqueConstraint("user_id", "follower_id", name="uq_followers_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    follower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(255), nullable=True)
    street1 = Column(String(255), nullable=False)
    street2 = Column(String(255), nullable=True)
    city = Column(String(255), nullable=False)
    state = Column(String(255), nullable=True)
    zip = Column(String(20), nullable=False)
    country = Column(String(255), nullable=False)
    mark_default = Column(String(1), nullable=False, default="0")
    is_deleted = Column(String(1), nullable=False, default="0")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
