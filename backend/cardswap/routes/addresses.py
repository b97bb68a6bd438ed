from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from cardswap.database import get_db
from cardswap.dependencies import get_current_user
from cardswap.models.user import User
from cardswap.responses import api_response, raise_for_result
from cardswap.schemas.user import AddressCreate, AddressOut
from cardswap.services import users as user_service

router = APIRouter()

@router.get("")
async def list_addresses(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = user_service.list_addresses(db, current_user.id)
    return api_response(200, True, "Addresses retrieved successfully", [AddressOut.model_validate(row) for row in rows])

@router.post("")
async def add_address(
    address: AddressCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    saved = raise_for_result(user_service.add_address(db, current_user.id, address))
    return api_response(201, True, "Address saved successfully", AddressOut.model_validate(saved))
