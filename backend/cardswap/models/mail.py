from sqlalchemy import Column, Integer, String, Text, DateTime
from datetime import datetime
from cardswap.database import Base

# mail_queues.status values
MAIL_PENDING = 0
MAIL_PROCESSED = 1

class EmailTemplate(Base):
    __tablename__ = "email_templetes"

    id = Column(Integer, primary_key=True, index=True)
    alias = Column(String(255), unique=True, index=True, nullable=False)
    email_subject = Column(String(255), nullable=True)
    email_description = Column(Text, nullable=True)
    email_from = Column(String(255), nullable=True)
    email_from_name = Column(String(255), nullable=True)
    email_cc = Column(String(500), nullable=True)
    email_bcc = Column(String(500), nullable=True)
    email_status = Column(String(1), nullable=False, default="1")

class MailQueue(Base):
    __tablename__ = "mail_queues"

    id = Column(Integer, primary_key=True, index=True)
    mail_title = Column(String(255), nullable=True)
    mail_from = Column(String(255), nullable=True)
    mail_from_name = Column(String(255), nullable=True)
    mail_to = Column(String(255), nullable=True)
    mail_subject = Column(String(255), nullable=True)
    mail_body = Column(Text, nullable=True)
    status = Column(Integer, nullable=False, default=MAIL_PENDING)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

class Setting(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    # 1 sends immediately, anything else defers to the mail queue
    mail_sent = Column(Integer, nullable=False, default=0)
