import logging
import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func
from sqlalchemy.orm import Session
from cardswap.config import settings
from cardswap.models.mail import EmailTemplate, MailQueue, Setting, MAIL_PENDING, MAIL_PROCESSED
from cardswap.schemas.mail import EmailTemplateSave
from cardswap.services.result import ServiceResult

logger = logging.getLogger(__name__)

class SmtpTransport:
    """Delivers a rendered mail over SMTP with SSL."""

    def __init__(self, host: str = None, port: int = None, username: str = None, password: str = None):
        self.host = host or settings.mail_host
        self.port = port or settings.mail_port
        self.username = username if username is not None else settings.mail_username
        self.password = password if password is not None else settings.mail_password

    def send(self, mail_from: str, to: str, subject: str, body: str, cc=None, bcc=None) -> bool:
        if not self.password:
            logger.error("Mail password is not configured; cannot deliver to %s", to)
            return False

        msg = MIMEText(body, "html")
        msg["Subject"] = subject
        msg["From"] = mail_from
        msg["To"] = to
        if cc:
            msg["Cc"] = ",".join(cc)
        recipients = [to] + list(cc or []) + list(bcc or [])

        try:
            with smtplib.SMTP_SSL(self.host, self.port) as smtp:
                smtp.login(self.username, self.password)
                smtp.sendmail(mail_from, recipients, msg.as_string())
            return True
        except (smtplib.SMTPException, OSError):
            logger.exception("Error sending mail to %s", to)
            return False

def _split_addresses(value: Optional[str]) -> list:
    if not value:
        return []
    return [address.strip() for address in value.split(",") if address.strip()]

def render_template(content: Optional[str], fields: dict) -> str:
    """Replace ``{{key}}`` placeholders; common keys first, then ``fields``."""
    now = datetime.utcnow()
    content = content or ""
    common = {
        "name": fields.get("name") or "",
        "email": fields.get("to") or "",
        "date": now.strftime("%m/%d/%Y"),
        "year": str(now.year),
    }
    for key, value in common.items():
        content = content.replace("{{" + key + "}}", value)
    for key, value in fields.items():
        content = content.replace("{{" + key + "}}", "" if value is None else str(value))
    return content

class MailService:
    def __init__(self, db: Session, transport: Optional[SmtpTransport] = None):
        self.db = db
        self.transport = transport or SmtpTransport()

    def _sending_enabled(self) -> bool:
        setting = self.db.query(Setting).order_by(Setting.id).first()
        return setting is not None and setting.mail_sent == 1

    def send(self, template_alias: str, fields: dict) -> bool:
        """Send (or queue) the active template ``template_alias`` to ``fields["to"]``."""
        try:
            template = (
                self.db.query(EmailTemplate)
                .filter(EmailTemplate.alias == template_alias, EmailTemplate.email_status == "1")
                .first()
            )
            if template is None:
                logger.error("Email template not found for alias: %s", template_alias)
                return False

            to = fields.get("to") or ""
            mail_from = template.email_from or settings.mail_from_address
            subject = render_template(template.email_subject, fields)
            body = render_template(template.email_description, fields)

            if self._sending_enabled():
                cc = _split_addresses(template.email_cc) + list(fields.get("cc") or [])
                bcc = _split_addresses(template.email_bcc) + list(fields.get("bcc") or [])
                return self.transport.send(mail_from, to, subject, body, cc=cc, bcc=bcc)

            self.db.add(MailQueue(
                mail_title=subject,
                mail_from=mail_from,
                mail_from_name=template.email_from_name or "",
                mail_to=to,
                mail_subject=subject,
                mail_body=body,
                status=MAIL_PENDING,
            ))
            self.db.commit()
            return True
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error preparing mail %s", template_alias)
            return False

    def process_mail_queue(self, limit: int = 50) -> dict:
        """Deliver pending queued mails, oldest first.

        Every picked row is marked processed whether or not delivery worked.
        """
        pending = (
            self.db.query(MailQueue)
            .filter(MailQueue.status == MAIL_PENDING)
            .order_by(MailQueue.created_at.asc(), MailQueue.id.asc())
            .limit(limit)
            .all()
        )
        sent = failed = 0
        for mail in pending:
            delivered = self.transport.send(
                mail.mail_from or settings.mail_from_address,
                mail.mail_to or "",
                mail.mail_subject or "",
                mail.mail_body or "",
            )
            if delivered:
                sent += 1
            else:
                failed += 1
                logger.warning("Queued mail %s could not be delivered", mail.id)
            mail.status = MAIL_PROCESSED
            self.db.commit()

        return {"processed": len(pending), "sent": sent, "failed": failed}

# ============== Template administration ==============

def list_email_templates(db: Session):
    return db.query(EmailTemplate).order_by(EmailTemplate.alias).all()

def get_email_template(db: Session, alias: str) -> ServiceResult:
    template = db.query(EmailTemplate).filter(EmailTemplate.alias == alias).first()
    if template is None:
        return ServiceResult.fail("Email template not found", 404)
    return ServiceResult.ok(template)

def save_email_template(db: Session, payload: EmailTemplateSave) -> ServiceResult:
    """Create the template named by ``payload.alias`` or overwrite it."""
    template = db.query(EmailTemplate).filter(EmailTemplate.alias == payload.alias).first()
    created = template is None
    if created:
        template = EmailTemplate(alias=payload.alias)
        db.add(template)
    for field, value in payload.model_dump(exclude={"alias"}).items():
        setattr(template, field, value)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error saving email template %s", payload.alias)
        return ServiceResult.fail("Failed to save email template", 500)
    db.refresh(template)
    logger.info("Email template %s %s", payload.alias, "created" if created else "updated")
    return ServiceResult.ok(template)

def delete_email_template(db: Session, template_id: int) -> ServiceResult:
    template = db.query(EmailTemplate).filter(EmailTemplate.id == template_id).first()
    if template is None:
        return ServiceResult.fail("Email template not found", 404)
    db.delete(template)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error deleting email template %s", template_id)
        return ServiceResult.fail("Failed to delete email template", 500)
    return ServiceResult.ok({"id": template_id})

def mail_queue_status(db: Session) -> dict:
    counts = dict(db.query(MailQueue.status, func.count(MailQueue.id)).group_by(MailQueue.status).all())
    return {
        "total_pending": counts.get(MAIL_PENDING, 0),
        "total_processed": counts.get(MAIL_PROCESSED, 0),
    }
