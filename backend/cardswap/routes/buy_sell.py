from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from cardswap.database import get_db
from cardswap.dependencies import get_current_user
from cardswap.models.buy_sell import BuyingStatus
from cardswap.models.user import User
from cardswap.responses import api_response, build_pagination, raise_for_result
from cardswap.schemas.buy_sell import BuySellCardOut, CartOffer, DealShipment
from cardswap.schemas.trade_proposal import PaymentConfirm
from cardswap.services import buy_sell

router = APIRouter()

def _deal_response(result, message: str):
    deal = raise_for_result(result)
    return api_response(200, True, message, BuySellCardOut.model_validate(deal))

# ============== Cart ==============

@router.post("/cart/offer/{card_id}")
async def cart_offer(
    card_id: int,
    offer: CartOffer,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = buy_sell.cart_offer(db, current_user.id, card_id, offer.offer_amt_buyer)
    if not result.success and result.data:
        # Refused offers report how many attempts are left
        return api_response(result.status_code, False, result.error, result.data)
    return api_response(200, True, "Successful offer, item added to cart.", raise_for_result(result))

@router.get("/cart")
async def get_cart(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = raise_for_result(buy_sell.get_cart(db, current_user.id))
    return api_response(200, True, "Cart retrieved successfully", data)

@router.delete("/cart/items/{cart_detail_id}")
async def remove_cart_item(
    cart_detail_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = raise_for_result(buy_sell.remove_cart_item(db, current_user.id, cart_detail_id))
    return api_response(200, True, "Product removed successfully from cart", data)

@router.post("/cart/checkout")
async def checkout(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = raise_for_result(buy_sell.process_checkout(db, current_user.id))
    return api_response(
        200,
        True,
        "Your offer has been submitted successfully. Please proceed with the payment to complete the process.",
        data,
    )

# ============== Deals ==============

@router.get("/buy-sell")
async def list_deals(
    status: Optional[BuyingStatus] = None,
    role: str = Query("any", pattern="^(buyer|seller|any)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows, total = buy_sell.list_deals(db, current_user.id, role, status, page, per_page)
    return api_response(
        200,
        True,
        "Buy/sell transactions retrieved successfully",
        [BuySellCardOut.model_validate(row) for row in rows],
        build_pagination(page, per_page, total),
    )

@router.get("/buy-sell/{deal_id}")
async def get_deal(deal_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _deal_response(buy_sell.get_deal(db, deal_id, current_user.id), "Buy/sell transaction retrieved successfully")

@router.post("/buy-sell/{deal_id}/confirm-payment")
async def confirm_payment(
    deal_id: int,
    payment: PaymentConfirm,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = buy_sell.confirm_deal_payment(db, deal_id, current_user.id, payment)
    return _deal_response(result, "Payment confirmed successfully")

@router.post("/buy-sell/{deal_id}/cancel")
async def cancel_deal(deal_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _deal_response(buy_sell.cancel_deal(db, deal_id, current_user.id), "Offer cancelled successfully")

@router.post("/buy-sell/{deal_id}/decline")
async def decline_deal(deal_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _deal_response(buy_sell.decline_deal(db, deal_id, current_user.id), "Offer declined successfully")

@router.post("/buy-sell/{deal_id}/ship")
async def ship_deal(
    deal_id: int,
    shipment: DealShipment,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _deal_response(buy_sell.ship_deal(db, deal_id, current_user.id, shipment), "Product marked as shipped")

@router.post("/buy-sell/{deal_id}/confirm-receipt")
async def confirm_receipt(deal_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _deal_response(buy_sell.confirm_receipt(db, deal_id, current_user.id), "Receipt confirmed successfully")
