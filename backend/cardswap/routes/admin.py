from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from cardswap.database import get_db
from cardswap.dependencies import get_admin_user, get_mail_service
from cardswap.models.user import User
from cardswap.responses import api_response, raise_for_result
from cardswap.schemas.mail import EmailTemplateOut, EmailTemplateSave
from cardswap.services import mail as mail_service
from cardswap.services.mail import MailService
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/mail-queue/process")
def process_mail_queue(
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_admin_user),
    mail: MailService = Depends(get_mail_service),
):
    counts = mail.process_mail_queue(limit=limit)
    logger.info("Mail queue processed by admin %s: %s", current_user.id, counts)
    return api_response(200, True, "Mail queue processed", counts)

@router.get("/mail-queue/status")
async def mail_queue_status(current_user: User = Depends(get_admin_user), db: Session = Depends(get_db)):
    return api_response(200, True, "Mail queue status retrieved", mail_service.mail_queue_status(db))

# ============== Email templates ==============

@router.get("/email-templates")
async def list_email_templates(current_user: User = Depends(get_admin_user), db: Session = Depends(get_db)):
    rows = mail_service.list_email_templates(db)
    return api_response(200, True, "Email templates retrieved successfully", [EmailTemplateOut.model_validate(row) for row in rows])

@router.get("/email-templates/{alias}")
async def get_email_template(alias: str, current_user: User = Depends(get_admin_user), db: Session = Depends(get_db)):
    template = raise_for_result(mail_service.get_email_template(db, alias))
    return api_response(200, True, "Email template retrieved successfully", EmailTemplateOut.model_validate(template))

@router.post("/email-templates")
async def save_email_template(
    template: EmailTemplateSave,
    current_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    saved = raise_for_result(mail_service.save_email_template(db, template))
    return api_response(200, True, "Email template saved successfully", EmailTemplateOut.model_validate(saved))

@router.delete("/email-templates/{template_id}")
async def delete_email_template(template_id: int, current_user: User = Depends(get_admin_user), db: Session = Depends(get_db)):
    data = raise_for_result(mail_service.delete_email_template(db, template_id))
    return api_response(200, True, "Email template deleted successfully", data)
