import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from cardswap.models.membership import EarnCredit, Transaction, TransactionType
from cardswap.models.user import User
from cardswap.services.result import ServiceResult

logger = logging.getLogger(__name__)

def claim_note(credit_type: str) -> str:
    return f"Earned credit for {credit_type}"

def list_transactions(
    db: Session,
    user_id: int,
    page: int,
    per_page: int,
    type: Optional[TransactionType] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    query = db.query(Transaction).filter(Transaction.user_id == user_id)
    if type is not None:
        query = query.filter(Transaction.type == type)
    if status is not None:
        query = query.filter(Transaction.status == status)
    if start_date is not None and end_date is not None:
        query = query.filter(Transaction.created_at.between(start_date, end_date))

    total = query.count()
    rows = (
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return rows, total

def get_transaction(db: Session, transaction_id: int, user_id: int):
    return (
        db.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
        .first()
    )

def list_earn_credits(db: Session):
    return db.query(EarnCredit).filter(EarnCredit.status == "1").order_by(EarnCredit.id.asc()).all()

def _claimed_notes(db: Session, user_id: int) -> set:
    rows = (
        db.query(Transaction.note)
        .filter(Transaction.user_id == user_id, Transaction.type == TransactionType.earned_credit)
        .all()
    )
    return {note for (note,) in rows}

def list_earn_credits_for_user(db: Session, user_id: int) -> list:
    claimed = _claimed_notes(db, user_id)
    return [
        {
            "id": credit.id,
            "type": credit.type,
            "title": credit.title,
            "amount": credit.amount,
            "status": credit.status,
            "is_claim": 1 if claim_note(credit.type) in claimed else 0,
        }
        for credit in list_earn_credits(db)
    ]

def claim_earn_credit(db: Session, user_id: int, earn_credit_id: int) -> ServiceResult:
    credit = (
        db.query(EarnCredit)
        .filter(EarnCredit.id == earn_credit_id, EarnCredit.status == "1")
        .first()
    )
    if credit is None:
        return ServiceResult.fail("Earn credit not found", 404)

    note = claim_note(credit.type)
    if note in _claimed_notes(db, user_id):
        return ServiceResult.fail("You have already claimed this credit", 400)

    try:
        db.query(User).filter(User.id == user_id).update(
            {User.credit: User.credit + credit.amount}, synchronize_session=False
        )
        transaction = Transaction(
            user_id=user_id,
            amount=credit.amount,
            type=TransactionType.earned_credit,
            note=note,
            status="1",
        )
        db.add(transaction)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error claiming earn credit %s for user %s", earn_credit_id, user_id)
        return ServiceResult.fail("Failed to claim credit", 500)

    db.refresh(transaction)
    logger.info("User %s claimed %s credit(s) for %s", user_id, credit.amount, credit.type)
    return ServiceResult.ok(transaction)
