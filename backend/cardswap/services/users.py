import logging
from sqlalchemy import Float, cast, or_, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from cardswap.models.user import Address, Follower, User
from cardswap.schemas.user import AddressCreate
from cardswap.services.result import ServiceResult

logger = logging.getLogger(__name__)

_RECOUNT_FOLLOWERS_SQL = text(
    "UPDATE users SET followers = (SELECT COUNT(*) FROM followers WHERE user_id = :user_id) WHERE id = :user_id"
)

def get_active_user(db: Session, user_id: int):
    return db.query(User).filter(User.id == user_id, User.user_status == "1").first()

def toggle_follow(db: Session, follower_id: int, user_id: int) -> ServiceResult:
    """Follow ``user_id`` if not already following, otherwise unfollow."""
    if follower_id == user_id:
        return ServiceResult.fail("You cannot follow yourself", 400)
    target = get_active_user(db, user_id)
    if target is None:
        return ServiceResult.fail("User not found", 404)

    existing = (
        db.query(Follower)
        .filter(Follower.user_id == user_id, Follower.follower_id == follower_id)
        .first()
    )
    if existing:
        db.delete(existing)
        following = False
    else:
        db.add(Follower(user_id=user_id, follower_id=follower_id))
        following = True

    db.flush()
    db.execute(_RECOUNT_FOLLOWERS_SQL, {"user_id": user_id})
    db.commit()
    db.refresh(target)
    return ServiceResult.ok({"user_id": user_id, "following": following, "followers": target.followers})

def top_traders(db: Session, limit: int):
    """Active users with the most completed trades, best rated first on ties."""
    return (
        db.query(User)
        .filter(User.user_status == "1")
        .order_by(User.trade_transactions.desc(), cast(User.ratings, Float).desc(), User.id)
        .limit(limit)
        .all()
    )

def traders_list(db: Session, page: int, per_page: int, search: str = None, exclude_id: int = None):
    query = db.query(User).filter(User.user_status == "1")
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            User.username.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
        ))
    total = query.count()
    rows = query.order_by(User.username).offset((page - 1) * per_page).limit(per_page).all()
    return rows, total

def list_addresses(db: Session, user_id: int):
    return (
        db.query(Address)
        .filter(Address.user_id == user_id, Address.is_deleted == "0")
        .order_by(Address.id)
        .all()
    )

def add_address(db: Session, user_id: int, payload: AddressCreate) -> ServiceResult:
    """Save an address; the first one, or one marked default, becomes the default."""
    existing = list_addresses(db, user_id)
    make_default = payload.mark_default or not existing
    if make_default:
        for address in existing:
            address.mark_default = "0"
    address = Address(
        user_id=user_id,
        **payload.model_dump(exclude={"mark_default"}),
        mark_default="1" if make_default else "0",
    )
    db.add(address)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error saving address for user %s", user_id)
        return ServiceResult.fail("Failed to save address", 500)
    db.refresh(address)
    return ServiceResult.ok(address)
