import logging
from typing import Optional
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from cardswap.models.trading_card import Category, TradingCard
from cardswap.schemas.trading_card import TradingCardCreate, TradingCardUpdate
from cardswap.services.result import ServiceResult

logger = logging.getLogger(__name__)

# Selling terms copied as given from create and update payloads
SALE_FIELDS = (
    "trading_card_offer_accept_above",
    "usa_shipping_flat_rate",
    "usa_add_product_flat_rate",
    "canada_shipping_flat_rate",
    "canada_add_product_flat_rate",
)

_RECOUNT_CARDS_SQL = text(
    "UPDATE users SET trading_cards = ("
    " SELECT COUNT(*) FROM trading_cards WHERE trader_id = :user_id AND mark_as_deleted IS NULL"
    ") WHERE id = :user_id"
)

def _flag(value: bool) -> str:
    return "1" if value else "0"

def validate_attributes(category: Category, attributes) -> Optional[str]:
    """Check an attribute variant against its category's field metadata.

    Returns an error message, or None when the attributes fit the category.
    """
    if attributes.kind != category.card_kind:
        return f"Category {category.sport_name} expects {category.card_kind} attributes, got {attributes.kind}"
    if not category.fields:
        return None

    allowed = {field.fields for field in category.fields}
    provided = attributes.model_fields_set - {"kind"}
    unexpected = sorted(provided - allowed)
    if unexpected:
        return f"Fields not used by category {category.sport_name}: {', '.join(unexpected)}"

    values = attributes.model_dump()
    missing = [
        field.fields
        for field in category.fields
        if field.is_required == "1" and values.get(field.fields) in (None, "", [])
    ]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    return None

def build_search_param(title: str, category: Category, attributes: dict) -> str:
    parts = [title]
    for field in category.fields:
        if field.mark_as_title == "1" and attributes.get(field.fields) not in (None, ""):
            parts.append(str(attributes[field.fields]))
    return " ".join(parts)

def _recount_cards(db: Session, user_id: int):
    db.execute(_RECOUNT_CARDS_SQL, {"user_id": user_id})

def _commit(db: Session, action: str, owner_id: int, recount: bool = False) -> Optional[ServiceResult]:
    try:
        if recount:
            db.flush()
            _recount_cards(db, owner_id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error trying to %s trading card for user %s", action, owner_id)
        return ServiceResult.fail(f"Failed to {action} trading card", 500)
    return None

def list_categories(db: Session):
    return db.query(Category).filter(Category.sport_status == "1").order_by(Category.sport_name).all()

def list_trading_cards(db: Session, page: int, per_page: int, category_id: int = None, trader_id: int = None):
    query = db.query(TradingCard).filter(
        TradingCard.mark_as_deleted.is_(None),
        TradingCard.trading_card_status == "1",
    )
    if category_id is not None:
        query = query.filter(TradingCard.category_id == category_id)
    if trader_id is not None:
        query = query.filter(TradingCard.trader_id == trader_id)

    total = query.count()
    rows = (
        query.order_by(TradingCard.created_at.desc(), TradingCard.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return rows, total

def get_trading_card(db: Session, card_id: int) -> Optional[TradingCard]:
    return (
        db.query(TradingCard)
        .options(joinedload(TradingCard.category))
        .filter(TradingCard.id == card_id, TradingCard.mark_as_deleted.is_(None))
        .first()
    )

def create_trading_card(db: Session, trader_id: int, card: TradingCardCreate) -> ServiceResult:
    category = (
        db.query(Category)
        .filter(Category.id == card.category_id, Category.sport_status == "1")
        .first()
    )
    if category is None:
        return ServiceResult.fail("Category not found", 404)
    error = validate_attributes(category, card.attributes)
    if error:
        return ServiceResult.fail(error, 400)

    attributes = card.attributes.model_dump(mode="json", exclude_none=True)
    db_card = TradingCard(
        trader_id=trader_id,
        category_id=category.id,
        title=card.title,
        search_param=build_search_param(card.title, category, attributes),
        description=card.description,
        trading_card_estimated_value=card.trading_card_estimated_value,
        trading_card_asking_price=card.trading_card_asking_price,
        can_trade=_flag(card.can_trade),
        can_buy=_flag(card.can_buy),
        free_shipping=_flag(card.free_shipping),
        **card.model_dump(include=set(SALE_FIELDS)),
        attributes=attributes,
    )
    db.add(db_card)
    failure = _commit(db, "create", trader_id, recount=True)
    if failure:
        return failure
    db.refresh(db_card)
    logger.info("Trading card %s listed by user %s", db_card.id, trader_id)
    return ServiceResult.ok(db_card)

def _owned_card(db: Session, card_id: int, user_id: int):
    card = get_trading_card(db, card_id)
    if card is None:
        return None, ServiceResult.fail("Trading card not found", 404)
    if card.trader_id != user_id:
        return None, ServiceResult.fail("You do not own this trading card", 403)
    return card, None

def update_trading_card(db: Session, card_id: int, user_id: int, changes: TradingCardUpdate) -> ServiceResult:
    card, failure = _owned_card(db, card_id, user_id)
    if failure:
        return failure

    if changes.attributes is not None:
        error = validate_attributes(card.category, changes.attributes)
        if error:
            return ServiceResult.fail(error, 400)
        card.attributes = changes.attributes.model_dump(mode="json", exclude_none=True)

    for field in ("title", "description", "trading_card_estimated_value", "trading_card_asking_price") + SALE_FIELDS:
        value = getattr(changes, field)
        if value is not None:
            setattr(card, field, value)
    if changes.can_trade is not None:
        card.can_trade = _flag(changes.can_trade)
    if changes.can_buy is not None:
        card.can_buy = _flag(changes.can_buy)
    if changes.free_shipping is not None:
        card.free_shipping = _flag(changes.free_shipping)

    card.search_param = build_search_param(card.title, card.category, card.attributes)
    failure = _commit(db, "update", user_id)
    if failure:
        return failure
    db.refresh(card)
    return ServiceResult.ok(card)

def delete_trading_card(db: Session, card_id: int, user_id: int) -> ServiceResult:
    card, failure = _owned_card(db, card_id, user_id)
    if failure:
        return failure
    card.mark_as_deleted = 1
    failure = _commit(db, "delete", user_id, recount=True)
    if failure:
        return failure
    logger.info("Trading card %s deleted by user %s", card_id, user_id)
    return ServiceResult.ok({"id": card_id})
