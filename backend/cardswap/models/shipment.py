from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from cardswap.database import Base

# shipment_payment_status values
SHIPMENT_PAID = 1
SHIPMENT_PAYMENT_PENDING = 2

class Shipment(Base):
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    trade_id = Column(Integer, ForeignKey("trade_proposals.id"), nullable=True, index=True)
    buy_sell_id = Column(Integer, ForeignKey("buy_sell_cards.id"), nullable=True)
    to_address = Column(String(255), nullable=True)
    from_address = Column(String(255), nullable=True)
    parcel = Column(JSON, nullable=True)
    parcel_weight_unit = Column(String(5), nullable=False, default="lbs")
    carrier = Column(String(50), nullable=True)
    selected_rate = Column(String(255), nullable=True)
    postage_label = Column(String(255), nullable=True)
    tracking_id = Column(String(255), nullable=True)
    paymentId = Column(String(255), nullable=True)
    shipment_payment_status = Column(Integer, nullable=False, default=SHIPMENT_PAYMENT_PENDING)
    shipment_status = Column(String(55), nullable=True, default="Pre-Transit")
    estimated_delivery_date = Column(DateTime, nullable=True)
    cart_amount_for_insurance = Column(Float, nullable=True)
    is_completed = Column(String(1), nullable=False, default="0")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="shipments")

    @property
    def is_fulfilled(self) -> bool:
        return bool(self.tracking_id and self.tracking_id.strip())
