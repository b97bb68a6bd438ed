import logging
from sqlalchemy.orm import Session
from cardswap.models.support import Support, SupportRequestStatus
from cardswap.schemas.support import SupportTicketCreate

logger = logging.getLogger(__name__)

def create_ticket(db: Session, user_id: int, ticket: SupportTicketCreate) -> Support:
    db_ticket = Support(
        user_id=user_id,
        first_name=ticket.first_name,
        last_name=ticket.last_name,
        email=ticket.email,
        subject=ticket.subject,
        comment=ticket.comment,
        support_request_status=SupportRequestStatus.new,
    )
    db.add(db_ticket)
    db.commit()
    db.refresh(db_ticket)
    logger.info("Support ticket %s opened by user %s", db_ticket.id, user_id)
    return db_ticket

def _paginate(query, page: int, per_page: int):
    total = query.count()
    rows = (
        query.order_by(Support.created_at.desc(), Support.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return rows, total

def list_user_tickets(db: Session, user_id: int, page: int, per_page: int):
    query = db.query(Support).filter(Support.user_id == user_id, Support.support_status == "1")
    return _paginate(query, page, per_page)

def list_all_tickets(db: Session, page: int, per_page: int, status: SupportRequestStatus = None):
    query = db.query(Support).filter(Support.support_status == "1")
    if status is not None:
        query = query.filter(Support.support_request_status == status)
    return _paginate(query, page, per_page)

def update_ticket_status(db: Session, ticket_id: int, status: SupportRequestStatus):
    ticket = db.query(Support).filter(Support.id == ticket_id).first()
    if ticket is None:
        return None
    ticket.support_request_status = status
    db.commit()
    db.refresh(ticket)
    return ticket
