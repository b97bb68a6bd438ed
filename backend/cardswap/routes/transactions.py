from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
from cardswap.database import get_db
from cardswap.dependencies import get_current_user
from cardswap.models.membership import TransactionType
from cardswap.models.user import User
from cardswap.responses import api_response, build_pagination, raise_for_result
from cardswap.schemas.membership import CreditClaim, TransactionOut
from cardswap.services import credits

router = APIRouter()

@router.get("/my-transactions")
async def my_transactions(
    type: Optional[TransactionType] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows, total = credits.list_transactions(
        db, current_user.id, page, per_page, type=type, status=status, start_date=start_date, end_date=end_date
    )
    return api_response(
        200,
        True,
        "Transactions retrieved successfully",
        [TransactionOut.model_validate(row) for row in rows],
        build_pagination(page, per_page, total),
    )

@router.post("/claim")
async def claim_credit(
    claim: CreditClaim,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    transaction = raise_for_result(credits.claim_earn_credit(db, current_user.id, claim.earn_credit_id))
    return api_response(201, True, "Credit claimed successfully", TransactionOut.model_validate(transaction))

@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    transaction = credits.get_transaction(db, transaction_id, current_user.id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return api_response(200, True, "Transaction retrieved successfully", TransactionOut.model_validate(transaction))
