import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from cardswap.models.buy_sell import BuySellCard, BuyingStatus, ReviewCollection
from cardswap.models.user import User
from cardswap.services.result import ServiceResult

logger = logging.getLogger(__name__)

# Each query averages one independent source of ratings received by :user_id
RATING_COMPONENT_QUERIES = (
    text("SELECT AVG(trader_rating) FROM reviews WHERE trader_id = :user_id AND trader_rating > 0"),
    text("SELECT AVG(user_rating) FROM reviews WHERE user_id = :user_id AND user_rating > 0"),
    text("SELECT AVG(buyer_rating) FROM buy_sell_cards WHERE seller = :user_id AND buyer_rating > 0"),
    text("SELECT AVG(seller_rating) FROM buy_sell_cards WHERE buyer = :user_id AND seller_rating > 0"),
)

UNREVIEWABLE_STATUSES = (BuyingStatus.new, BuyingStatus.declined, BuyingStatus.cancelled)

def average_components(components) -> str:
    """Mean of the non-zero components, rounded half-up to one decimal."""
    values = [Decimal(str(value)) for value in components if value]
    if not values:
        return "0.0"
    mean = sum(values) / len(values)
    return str(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

def compute_user_rating(db: Session, user_id: int) -> str:
    components = [db.execute(query, {"user_id": user_id}).scalar() for query in RATING_COMPONENT_QUERIES]
    return average_components(components)

def submit_buy_sell_review(db: Session, buy_sell_id: int, reviewer_id: int, rating: int, review: str = None) -> ServiceResult:
    deal = db.query(BuySellCard).filter(BuySellCard.id == buy_sell_id).first()
    if deal is None:
        return ServiceResult.fail("Buy/sell transaction not found", 404)
    if reviewer_id not in (deal.buyer, deal.seller):
        return ServiceResult.fail("You are not a party to this transaction", 403)
    if deal.buying_status in UNREVIEWABLE_STATUSES:
        return ServiceResult.fail("This transaction cannot be reviewed yet", 400)

    now = datetime.utcnow()
    if reviewer_id == deal.buyer:
        if deal.buyer_rating:
            return ServiceResult.fail("You have already reviewed this transaction", 400)
        deal.buyer_rating = rating
        deal.buyer_review = review
        deal.reviewed_on = now
        rated_user_id = deal.seller
    else:
        if deal.seller_rating:
            return ServiceResult.fail("You have already reviewed this transaction", 400)
        deal.seller_rating = rating
        deal.seller_review = review
        deal.reviewed_by_seller_on = now
        rated_user_id = deal.buyer

    try:
        db.add(ReviewCollection(
            buy_sell_card_id=deal.id,
            user_id=rated_user_id,
            sender_id=reviewer_id,
            rating=rating,
            content=review,
        ))
        # The averages are raw SQL, so pending writes must reach the database first
        db.flush()
        new_rating = compute_user_rating(db, rated_user_id)
        db.query(User).filter(User.id == rated_user_id).update(
            {User.ratings: new_rating}, synchronize_session=False
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error submitting review for buy/sell %s", buy_sell_id)
        return ServiceResult.fail("Failed to submit review", 500)

    logger.info("User %s reviewed buy/sell %s; user %s now rated %s", reviewer_id, deal.id, rated_user_id, new_rating)
    return ServiceResult.ok({"buy_sell_id": deal.id, "rated_user_id": rated_user_id, "ratings": new_rating})
