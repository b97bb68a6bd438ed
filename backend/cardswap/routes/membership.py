from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from cardswap.database import get_db
from cardswap.dependencies import get_current_user
from cardswap.models.user import User
from cardswap.responses import api_response, raise_for_result
from cardswap.schemas.membership import MembershipOut, MembershipPurchase, MembershipUserOut, TransactionOut
from cardswap.services import membership as memberships

router = APIRouter()

@router.get("/")
async def list_memberships(active: bool = True, db: Session = Depends(get_db)):
    rows = memberships.list_memberships(db, active_only=active)
    return api_response(200, True, "Memberships retrieved successfully", [MembershipOut.model_validate(row) for row in rows])

@router.get("/{membership_id}")
async def get_membership(membership_id: int, db: Session = Depends(get_db)):
    membership = memberships.get_membership(db, membership_id)
    if not membership:
        raise HTTPException(status_code=404, detail="Membership not found")
    return api_response(200, True, "Membership retrieved successfully", MembershipOut.model_validate(membership))

@router.post("/purchase")
async def purchase_membership(
    purchase: MembershipPurchase,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = raise_for_result(memberships.purchase_membership(db, current_user.id, purchase))
    return api_response(201, True, "Membership purchased successfully", {
        "membership_user": MembershipUserOut.model_validate(data["membership_user"]),
        "transaction": TransactionOut.model_validate(data["transaction"]),
    })
