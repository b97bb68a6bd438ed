import calendar
import logging
from datetime import date
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from cardswap.models.membership import Membership, MembershipUser, Transaction, TransactionType
from cardswap.schemas.membership import MembershipPurchase
from cardswap.services.result import ServiceResult

logger = logging.getLogger(__name__)

YEARLY_MEMBERSHIP = "Pro Collector"

def add_months(start: date, months: int) -> date:
    """Shift ``start`` by whole months, clamping to the last day of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)

def membership_expiry(membership: Membership, months=None, today: date = None):
    today = today or date.today()
    if months:
        return add_months(today, months)
    if membership.type == YEARLY_MEMBERSHIP:
        return add_months(today, 12)
    return None

def list_memberships(db: Session, active_only: bool = True):
    query = db.query(Membership)
    if active_only:
        query = query.filter(Membership.status == "1")
    return query.order_by(Membership.price.asc(), Membership.id.asc()).all()

def get_membership(db: Session, membership_id: int):
    return db.query(Membership).filter(Membership.id == membership_id).first()

def purchase_membership(db: Session, user_id: int, payload: MembershipPurchase) -> ServiceResult:
    membership = get_membership(db, payload.membership_id)
    if membership is None:
        return ServiceResult.fail("Membership not found", 404)

    try:
        membership_user = MembershipUser(
            user_id=user_id,
            membership_id=membership.id,
            expired_date=membership_expiry(membership, payload.months),
            type=membership.type,
            status="1",
        )
        transaction = Transaction(
            user_id=user_id,
            payment_id=payload.payment_id,
            amount=payload.amount,
            type=TransactionType.purchase,
            note="Membership purchased",
            status="1",
        )
        db.add_all([membership_user, transaction])
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error purchasing membership %s for user %s", payload.membership_id, user_id)
        return ServiceResult.fail("Failed to purchase membership", 500)

    db.refresh(membership_user)
    db.refresh(transaction)
    logger.info("User %s purchased membership %s", user_id, membership.id)
    return ServiceResult.ok({"membership_user": membership_user, "transaction": transaction})
