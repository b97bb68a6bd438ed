from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from cardswap.database import get_db
from cardswap.dependencies import get_current_user
from cardswap.models.user import User
from cardswap.responses import api_response, build_pagination, raise_for_result
from cardswap.schemas.trading_card import CategoryOut, TradingCardCreate, TradingCardOut, TradingCardUpdate
from cardswap.services import trading_card as cards

router = APIRouter()

@router.get("/categories")
async def list_categories(db: Session = Depends(get_db)):
    rows = cards.list_categories(db)
    return api_response(200, True, "Categories retrieved successfully", [CategoryOut.model_validate(row) for row in rows])

@router.get("/trading-cards")
async def list_trading_cards(
    category_id: Optional[int] = None,
    trader_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = cards.list_trading_cards(db, page, per_page, category_id=category_id, trader_id=trader_id)
    return api_response(
        200,
        True,
        "Trading cards retrieved successfully",
        [TradingCardOut.model_validate(row) for row in rows],
        build_pagination(page, per_page, total),
    )

@router.get("/trading-cards/{card_id}")
async def get_trading_card(card_id: int, db: Session = Depends(get_db)):
    card = cards.get_trading_card(db, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Trading card not found")
    return api_response(200, True, "Trading card retrieved successfully", TradingCardOut.model_validate(card))

@router.post("/trading-cards")
async def create_trading_card(
    card: TradingCardCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_card = raise_for_result(cards.create_trading_card(db, current_user.id, card))
    return api_response(201, True, "Trading card created successfully", TradingCardOut.model_validate(db_card))

@router.patch("/trading-cards/{card_id}")
async def update_trading_card(
    card_id: int,
    changes: TradingCardUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_card = raise_for_result(cards.update_trading_card(db, card_id, current_user.id, changes))
    return api_response(200, True, "Trading card updated successfully", TradingCardOut.model_validate(db_card))

@router.delete("/trading-cards/{card_id}")
async def delete_trading_card(
    card_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = raise_for_result(cards.delete_trading_card(db, card_id, current_user.id))
    return api_response(200, True, "Trading card deleted successfully", data)
