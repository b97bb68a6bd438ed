from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from cardswap.database import Base

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    sport_name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    # Which attribute variant listings in this category carry
    card_kind = Column(String(50), nullable=False)
    sport_status = Column(String(1), nullable=False, default="1")

    fields = relationship("CategoryField", back_populates="category", order_by="CategoryField.priority")

class CategoryField(Base):
    __tablename__ = "category_fields"
    __table_args__ = (UniqueConstraint("category_id", "fields", name="uq_category_fields_name"),)

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    fields = Column(String(255), nullable=False)  # attribute name
    is_required = Column(String(1), nullable=False, default="0")
    priority = Column(Integer, nullable=False, default=0)
    mark_as_title = Column(String(1), nullable=False, default="0")

    category = relationship("Category", back_populates="fields")

class TradingCard(Base):
    __tablename__ = "trading_cards"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), nullable=True)
    trader_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    search_param = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    trading_card_estimated_value = Column(Float, nullable=True)
    trading_card_asking_price = Column(Float, nullable=True)
    # Offers below this are refused; None accepts any offer up to the asking price
    trading_card_offer_accept_above = Column(Float, nullable=True)
    free_shipping = Column(String(1), nullable=False, default="0")
    usa_shipping_flat_rate = Column(Float, nullable=True)
    usa_add_product_flat_rate = Column(Float, nullable=True)
    canada_shipping_flat_rate = Column(Float, nullable=True)
    canada_add_product_flat_rate = Column(Float, nullable=True)
    can_trade = Column(String(1), nullable=False, default="1")
    can_buy = Column(String(1), nullable=False, default="0")
    is_traded = Column(String(1), nullable=False, default="0")
    trading_card_status = Column(String(1), nullable=False, default="1")
    mark_as_deleted = Column(Integer, nullable=True)
    # Category specific attribute subset, validated against the category's variant
    attributes = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category")

class CategoryShippingRate(Base):
    """A seller's per-category rate for each additional card shipped."""
    __tablename__ = "category_shipping_rates"
    __table_args__ = (UniqueConstraint("category_id", "user_id", name="uq_category_shipping_rates_seller"),)

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    usa_rate = Column(Float, nullable=False, default=0)
    canada_rate = Column(Float, nullable=False, default=0)
