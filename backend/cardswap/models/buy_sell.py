from sqlalchemy import Column, Integer, String, Float, Enum, Text, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime
from cardswap.database import Base
import enum

class BuyingStatus(str, enum.Enum):
    new = "new"
    purchased = "purchased"
    declined = "declined"
    dispatched = "dispatched"
    delivered = "delivered"
    confirmed_by_buyer = "confirmed_by_buyer"
    cancelled = "cancelled"

class BuyOfferStatus(Base):
    __tablename__ = "buy_offer_statuses"

    id = Column(Integer, primary_key=True, index=True)
    alias = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    to_sender = Column(String(255), nullable=True)
    to_receiver = Column(String(255), nullable=True)
    status = Column(String(1), nullable=False, default="1")

class BuySellCard(Base):
    __tablename__ = "buy_sell_cards"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), nullable=True)
    seller = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    buyer = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    # Set only when the deal covers a single card; see BuyOfferProduct otherwise
    main_card = Column(Integer, ForeignKey("trading_cards.id"), nullable=True)
    trading_card_asking_price = Column(Numeric(12, 2), nullable=True)
    trading_card_offer_accept_above = Column(Numeric(12, 2), nullable=True)
    offer_amt_buyer = Column(Numeric(12, 2), nullable=True)
    products_offer_amount = Column(Float, nullable=True)
    shipment_amount = Column(Float, nullable=True)
    paid_amount = Column(Numeric(12, 2), nullable=True)
    amount_paid_on = Column(DateTime, nullable=True)
    amount_pay_id = Column(String(255), nullable=True)
    amount_payer_id = Column(String(255), nullable=True)
    amount_pay_status = Column(String(255), nullable=True)
    buying_status = Column(Enum(BuyingStatus), nullable=False, default=BuyingStatus.new)
    buy_offer_status_id = Column(Integer, ForeignKey("buy_offer_statuses.id"), nullable=True)
    track_id = Column(String(255), nullable=True)
    shipped_on = Column(DateTime, nullable=True)
    delivered_on = Column(DateTime, nullable=True)

    # Rating given by the buyer (about the seller)
    buyer_rating = Column(Integer, nullable=True)
    buyer_review = Column(Text, nullable=True)
    reviewed_on = Column(DateTime, nullable=True)
    # Rating given by the seller (about the buyer)
    seller_rating = Column(Integer, nullable=True)
    seller_review = Column(Text, nullable=True)
    reviewed_by_seller_on = Column(DateTime, nullable=True)

    total_amount = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    buyer_user = relationship("User", foreign_keys=[buyer])
    seller_user = relationship("User", foreign_keys=[seller])
    offer_status = relationship("BuyOfferStatus")
    products = relationship("BuyOfferProduct", order_by="BuyOfferProduct.id")

    @property
    def card_ids(self):
        if self.main_card:
            return [self.main_card]
        return [product.main_card for product in self.products]

class BuyOfferProduct(Base):
    __tablename__ = "buyoffer_products"

    id = Column(Integer, primary_key=True, index=True)
    buy_sell_id = Column(Integer, ForeignKey("buy_sell_cards.id"), nullable=False, index=True)
    main_card = Column(Integer, ForeignKey("trading_cards.id"), nullable=False)
    trading_card_asking_price = Column(Numeric(12, 2), nullable=True)
    trading_card_offer_accept_above = Column(Numeric(12, 2), nullable=True)
    offer_amt_buyer = Column(Numeric(12, 2), nullable=True)

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    trade_proposal_id = Column(Integer, ForeignKey("trade_proposals.id"), nullable=True)
    trader_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    trader_rating = Column(Integer, nullable=True)
    trader_review = Column(Text, nullable=True)
    user_rating = Column(Integer, nullable=True)
    user_review = Column(Text, nullable=True)
    review_status = Column(String(1), nullable=False, default="1")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

class ReviewCollection(Base):
    __tablename__ = "review_collections"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, nullable=True)
    buy_sell_card_id = Column(Integer, ForeignKey("buy_sell_cards.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rating = Column(Float, nullable=True)
    content = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
