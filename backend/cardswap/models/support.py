from sqlalchemy import Column, Integer, String, Text, Enum, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from cardswap.database import Base
import enum

class SupportRequestStatus(str, enum.Enum):
    new = "New"
    resolved = "Resolved"
    on_hold = "On Hold"

class Support(Base):
    __tablename__ = "support"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    comment = Column(Text, nullable=False)
    support_request_status = Column(
        Enum(SupportRequestStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SupportRequestStatus.new,
    )
    support_status = Column(String(1), nullable=False, default="1")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="support_tickets")
