"""Cart offers, checkout and the buy/sell deal lifecycle.

Adding a card to a cart holds it (``is_traded = "1"``) and charges its seller
one coin; removing it again before checkout releases the card and refunds the
coin. Checkout turns the cart into a single BuySellCard deal.
"""
import logging
import secrets
from collections import defaultdict
from datetime import datetime
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from cardswap.models.buy_sell import BuyOfferProduct, BuyOfferStatus, BuySellCard, BuyingStatus
from cardswap.models.cart import BuyOfferAttempt, Cart, CartDetail
from cardswap.models.membership import CreditDeductionLog
from cardswap.models.notification import NotificationSetFor
from cardswap.models.shipment import Shipment
from cardswap.models.trade_proposal import TradeProposal, TradeStatus
from cardswap.models.trading_card import CategoryShippingRate, TradingCard
from cardswap.models.user import Address, User
from cardswap.schemas.buy_sell import DealShipment
from cardswap.schemas.trade_proposal import PaymentConfirm
from cardswap.services.notification import NotificationContext, notify_traders
from cardswap.services.result import ServiceResult
from cardswap.services.trade_status import set_trade_proposal_status

logger = logging.getLogger(__name__)

BUYER = "buyer"
SELLER = "seller"

MAX_OFFER_ATTEMPTS = 3

# Default address country -> prefix of the card's shipping rate columns
SHIPPING_REGIONS = {"United States": "usa", "Canada": "canada"}

def generate_offer_code() -> str:
    return f"ESW-{datetime.utcnow():%Y%m%d%H%M%S}{secrets.randbelow(10000):04d}"

def _price(value) -> str:
    return "$" + f"{float(value):.2f}".rstrip("0").rstrip(".")

def _commit(db: Session, action: str, target_id) -> Optional[ServiceResult]:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error trying to %s %s", action, target_id)
        return ServiceResult.fail(f"Failed to {action}", 500)
    return None

# ============== Offer attempts ==============

def _refuse_offer(card: TradingCard, message: str, used: int, remaining: int) -> ServiceResult:
    return ServiceResult(
        success=False,
        error=message,
        status_code=400,
        data={"inValidOfferCounts": used, "tradingCardId": card.id, "remaining": remaining},
    )

def _record_attempt(db: Session, attempt: Optional[BuyOfferAttempt], user_id: int, card_id: int, offer_amount: float) -> int:
    if attempt is None:
        db.add(BuyOfferAttempt(user_id=user_id, product_id=card_id, attempts=1, offer_amount=offer_amount))
        return 1
    attempt.attempts += 1
    attempt.offer_amount = max(attempt.offer_amount or 0, offer_amount)
    return attempt.attempts

def check_offer(db: Session, card: TradingCard, user_id: int, offer_amount: float) -> ServiceResult:
    """Judge an offer against the card's asking price and acceptance threshold.

    An offer at the asking price always goes through and one above it never
    does. Below the asking price every offer except one exactly at the
    threshold uses up one of the buyer's attempts; offers under the threshold
    are refused, and once the attempts are gone only the asking price is
    accepted. A buyer may never offer less than before.

    Recorded attempts are left pending in the session for the caller to commit.
    """
    asking = card.trading_card_asking_price
    accept_above = card.trading_card_offer_accept_above
    attempt = (
        db.query(BuyOfferAttempt)
        .filter(BuyOfferAttempt.user_id == user_id, BuyOfferAttempt.product_id == card.id)
        .first()
    )
    used = attempt.attempts if attempt else 0

    if offer_amount > asking:
        return _refuse_offer(
            card,
            f"Invalid offer! The asking price is {_price(asking)}. Your entered amount exceeds the maximum allowed."
            f" Please pay {_price(asking)}.",
            used,
            MAX_OFFER_ATTEMPTS - used,
        )
    if attempt is not None and attempt.offer_amount is not None and offer_amount < attempt.offer_amount:
        return _refuse_offer(card, f"You cannot submit an offer lower than your previous amount of {_price(attempt.offer_amount)}", used, 0)
    if offer_amount >= asking or accept_above is None:
        return ServiceResult.ok()
    if used >= MAX_OFFER_ATTEMPTS:
        return _refuse_offer(card, "Offer limit exceeded, buy at asking price.", used, 0)
    if offer_amount == accept_above:
        return ServiceResult.ok()

    attempts = _record_attempt(db, attempt, user_id, card.id, offer_amount)
    if offer_amount < accept_above:
        limit = f"{attempts}/{MAX_OFFER_ATTEMPTS}" if attempts < MAX_OFFER_ATTEMPTS else "Exceeded, buy at asking price."
        return _refuse_offer(card, f"Insufficient amount. Offer Limit: {limit}", attempts, MAX_OFFER_ATTEMPTS - attempts)
    return ServiceResult.ok()

# ============== Cart amounts ==============

def _default_address(db: Session, user_id: int) -> Optional[Address]:
    return (
        db.query(Address)
        .filter(Address.user_id == user_id, Address.mark_default == "1", Address.is_deleted == "0")
        .first()
    )

def _seller_category_rate(db: Session, category_id: int, seller_id: int, region: str) -> float:
    rate = (
        db.query(CategoryShippingRate)
        .filter(CategoryShippingRate.category_id == category_id, CategoryShippingRate.user_id == seller_id)
        .first()
    )
    if rate is None:
        return 0
    value = rate.usa_rate if region == "usa" else rate.canada_rate
    return value if value and value > 0 else 0

def calc_cart_amounts(db: Session, cart: Cart) -> dict:
    """Sum the cart's offers and work out its shipping fee.

    Shipping is charged only to US and Canadian default addresses. Within a
    category the card with the highest flat rate pays that rate; each other
    card with a flat rate pays its additional-card rate, or else the seller's
    rate for the category. Cards without a flat rate ship free.
    """
    address = _default_address(db, cart.user_id)
    region = SHIPPING_REGIONS.get(address.country) if address else None

    cart_amount = 0.0
    flat_rates = defaultdict(dict)
    additional_rates = defaultdict(dict)
    for detail in cart.details:
        cart_amount += detail.product_amount
        product = detail.product
        if region is None or product is None or product.free_shipping == "1":
            continue
        flat = getattr(product, f"{region}_shipping_flat_rate") or 0
        additional = getattr(product, f"{region}_add_product_flat_rate") or 0
        if flat > 0:
            flat_rates[product.category_id][product.id] = flat
        if additional > 0:
            additional_rates[product.category_id][product.id] = additional

    shipping_fee = 0.0
    for category_id, rates in flat_rates.items():
        shipping_fee += rates.pop(max(rates, key=rates.get))
        for product_id in rates:
            additional = additional_rates[category_id].get(product_id)
            if additional:
                shipping_fee += additional
            else:
                shipping_fee += _seller_category_rate(db, category_id, cart.seller_id, region)

    return {
        "cart_amount": cart_amount,
        "shipping_fee": shipping_fee,
        "total_amount": cart_amount + shipping_fee,
    }

def _apply_cart_amounts(db: Session, cart: Cart):
    for field, value in calc_cart_amounts(db, cart).items():
        setattr(cart, field, value)

# ============== Cart ==============

def _user_cart(db: Session, user_id: int) -> Optional[Cart]:
    return (
        db.query(Cart)
        .options(joinedload(Cart.details).joinedload(CartDetail.product).joinedload(TradingCard.category))
        .filter(Cart.user_id == user_id)
        .first()
    )

def cart_offer(db: Session, user_id: int, card_id: int, offer_amount: float) -> ServiceResult:
    card = db.query(TradingCard).filter(TradingCard.id == card_id, TradingCard.mark_as_deleted.is_(None)).first()
    if card is None:
        return ServiceResult.fail("Trading card not found", 404)
    if card.trader_id == user_id:
        return ServiceResult.fail("You can't buy your own product.", 400)
    if card.can_buy != "1" or card.trading_card_asking_price is None:
        return ServiceResult.fail("The product is not available for sale.", 400)
    if card.is_traded == "1":
        return ServiceResult.fail("This product is already in a transaction.", 400)

    seller = db.query(User).filter(User.id == card.trader_id).first()
    if seller is None:
        return ServiceResult.fail("Seller not found", 404)
    if seller.cxp_coins <= 0:
        return ServiceResult.fail(
            "You can not submit this offer. The seller needs more coins for this transaction.", 400
        )
    cart = db.query(Cart).filter(Cart.user_id == user_id).first()
    if cart is not None and cart.seller_id != seller.id:
        return ServiceResult.fail(
            "You cannot add this product to your cart. You have already added a product from another seller.", 400
        )

    verdict = check_offer(db, card, user_id, offer_amount)
    if not verdict.success:
        return _commit(db, "record offer on card", card.id) or verdict

    try:
        if cart is None:
            cart = Cart(user_id=user_id, seller_id=seller.id)
            db.add(cart)
            db.flush()
        detail = CartDetail(cart_id=cart.id, user_id=user_id, product_id=card.id, product_amount=offer_amount)
        db.add(detail)
        card.is_traded = "1"

        attempt = (
            db.query(BuyOfferAttempt)
            .filter(BuyOfferAttempt.user_id == user_id, BuyOfferAttempt.product_id == card.id)
            .first()
        )
        if attempt is None:
            db.add(BuyOfferAttempt(user_id=user_id, product_id=card.id, attempts=1, offer_amount=offer_amount))
        else:
            attempt.offer_amount = offer_amount

        seller.cxp_coins -= 1
        db.flush()
        db.add(CreditDeductionLog(
            trade_status="Completed",
            sent_to=seller.id,
            coin=1,
            cart_detail_id=detail.id,
            status="Success",
            deduction_from="Seller",
        ))
        db.expire(cart, ["details"])
        _apply_cart_amounts(db, cart)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error adding card %s to the cart of user %s", card.id, user_id)
        return ServiceResult.fail("Failed to add the product to your cart", 500)

    logger.info("Card %s added to the cart of user %s for %s", card.id, user_id, offer_amount)
    return ServiceResult.ok({"cart_id": cart.id, "cart_detail_id": detail.id})

def _product_view(card: Optional[TradingCard]) -> Optional[dict]:
    if card is None:
        return None
    return {
        "id": card.id,
        "title": card.title,
        "search_param": card.search_param,
        "trading_card_asking_price": card.trading_card_asking_price,
        "trading_card_offer_accept_above": card.trading_card_offer_accept_above,
        "trader_id": card.trader_id,
        "free_shipping": card.free_shipping,
        "usa_shipping_flat_rate": card.usa_shipping_flat_rate,
        "usa_add_product_flat_rate": card.usa_add_product_flat_rate,
        "canada_shipping_flat_rate": card.canada_shipping_flat_rate,
        "canada_add_product_flat_rate": card.canada_add_product_flat_rate,
        "sport_name": card.category.sport_name if card.category else None,
    }

def _address_view(address: Address) -> dict:
    return {
        "id": address.id,
        "street1": address.street1,
        "street2": address.street2,
        "city": address.city,
        "state": address.state,
        "zip": address.zip,
        "country": address.country,
        "mark_default": address.mark_default,
    }

def get_cart(db: Session, user_id: int) -> ServiceResult:
    """The buyer's cart with freshly computed amounts, plus their addresses."""
    cart = _user_cart(db, user_id)
    cart_data = None
    if cart is not None:
        _apply_cart_amounts(db, cart)
        failure = _commit(db, "update cart", cart.id)
        if failure:
            return failure
        cart_data = {
            "id": cart.id,
            "user_id": cart.user_id,
            "seller_id": cart.seller_id,
            "cart_amount": cart.cart_amount,
            "shipping_fee": cart.shipping_fee,
            "total_amount": cart.total_amount,
            "created_at": cart.created_at,
            "updated_at": cart.updated_at,
            "cartDetails": [
                {
                    "id": detail.id,
                    "cart_id": detail.cart_id,
                    "product_amount": detail.product_amount,
                    "product": _product_view(detail.product),
                }
                for detail in cart.details
            ],
        }

    addresses = (
        db.query(Address)
        .filter(Address.user_id == user_id, Address.is_deleted == "0")
        .order_by(Address.id)
        .all()
    )
    return ServiceResult.ok({"cart": cart_data, "addresses": [_address_view(a) for a in addresses]})

def remove_cart_item(db: Session, user_id: int, cart_detail_id: int) -> ServiceResult:
    detail = (
        db.query(CartDetail)
        .filter(CartDetail.id == cart_detail_id, CartDetail.user_id == user_id)
        .first()
    )
    if detail is None:
        return ServiceResult.fail("Cart item not found", 404)

    cart = detail.cart
    product = detail.product
    try:
        if product is not None:
            seller = db.query(User).filter(User.id == product.trader_id).first()
            if seller is not None:
                seller.cxp_coins += 1
                log = (
                    db.query(CreditDeductionLog)
                    .filter(
                        CreditDeductionLog.sent_to == seller.id,
                        CreditDeductionLog.status == "Success",
                        CreditDeductionLog.cart_detail_id == detail.id,
                    )
                    .first()
                )
                if log is not None:
                    log.status = "Refund"
            product.is_traded = "0"

        db.delete(detail)
        db.flush()
        db.expire(cart, ["details"])
        if cart.details:
            _apply_cart_amounts(db, cart)
        else:
            db.delete(cart)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error removing cart item %s for user %s", cart_detail_id, user_id)
        return ServiceResult.fail("Failed to remove the product from your cart", 500)
    return ServiceResult.ok({"id": cart_detail_id})

# ============== Deal status and notifications ==============

def set_offer_status(db: Session, deal_id: int, alias: str) -> ServiceResult:
    """Point a deal at the offer status row with ``alias``; unknown aliases are skipped."""
    status_row = (
        db.query(BuyOfferStatus)
        .filter(BuyOfferStatus.alias == alias, BuyOfferStatus.status == "1")
        .first()
    )
    if status_row is None:
        logger.warning("Offer status %s not found for deal %s", alias, deal_id)
        return ServiceResult.fail(f"Offer status {alias} not found", 404)
    db.query(BuySellCard).filter(BuySellCard.id == deal_id).update(
        {BuySellCard.buy_offer_status_id: status_row.id}, synchronize_session=False
    )
    failure = _commit(db, "set offer status on deal", deal_id)
    if failure:
        return failure
    return ServiceResult.ok(status_row.alias)

def _notify(db: Session, deal: BuySellCard, act: str, actor_id: int):
    db.refresh(deal)
    status_row = deal.offer_status
    context = NotificationContext(
        sender_alias=deal.buyer_user.username if deal.buyer_user else "",
        receiver_alias=deal.seller_user.username if deal.seller_user else "",
        sender_trade_status=(status_row.to_sender or "") if status_row else "",
        receiver_trade_status=(status_row.to_receiver or "") if status_row else "",
    )
    other_id = deal.seller if actor_id == deal.buyer else deal.buyer
    notify_traders(db, act, actor_id, other_id, deal.id, NotificationSetFor.Offer, context)

def _finish(db: Session, deal: BuySellCard, actor_id: int, alias: str, act: str) -> ServiceResult:
    set_offer_status(db, deal.id, alias)
    _notify(db, deal, act, actor_id)
    db.refresh(deal)
    return ServiceResult.ok(deal)

# ============== Checkout ==============

def process_checkout(db: Session, user_id: int) -> ServiceResult:
    cart = _user_cart(db, user_id)
    if cart is None or not cart.details:
        return ServiceResult.fail("Your cart is empty", 400)
    if _default_address(db, user_id) is None:
        return ServiceResult.fail(
            "Please add your shipping address, without shipping address you can not proceed for checkout", 400
        )
    seller = db.query(User).filter(User.id == cart.seller_id).first()
    if seller is None:
        return ServiceResult.fail("Seller not found", 404)

    details = list(cart.details)
    _apply_cart_amounts(db, cart)
    deal = BuySellCard(
        code=generate_offer_code(),
        seller=seller.id,
        buyer=user_id,
        products_offer_amount=cart.cart_amount,
        shipment_amount=cart.shipping_fee,
        total_amount=cart.total_amount,
        buying_status=BuyingStatus.new,
    )
    if len(details) == 1:
        only = details[0]
        deal.main_card = only.product_id
        deal.trading_card_asking_price = only.product.trading_card_asking_price
        deal.trading_card_offer_accept_above = only.product.trading_card_offer_accept_above
        deal.offer_amt_buyer = only.product_amount

    try:
        db.add(deal)
        db.flush()
        if len(details) > 1:
            db.add_all([
                BuyOfferProduct(
                    buy_sell_id=deal.id,
                    main_card=detail.product_id,
                    trading_card_asking_price=detail.product.trading_card_asking_price,
                    trading_card_offer_accept_above=detail.product.trading_card_offer_accept_above,
                    offer_amt_buyer=detail.product_amount,
                )
                for detail in details
            ])
        db.query(CreditDeductionLog).filter(
            CreditDeductionLog.cart_detail_id.in_([detail.id for detail in details]),
            CreditDeductionLog.status == "Success",
        ).update({CreditDeductionLog.buy_sell_id: deal.id}, synchronize_session=False)
        db.query(BuyOfferAttempt).filter(
            BuyOfferAttempt.user_id == user_id,
            BuyOfferAttempt.product_id.in_([detail.product_id for detail in details]),
        ).delete(synchronize_session=False)
        for detail in details:
            db.delete(detail)
        db.flush()
        db.expire(cart, ["details"])
        db.delete(cart)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Checkout failed for user %s", user_id)
        return ServiceResult.fail("Failed to submit your offer", 500)

    logger.info("Deal %s created by buyer %s from seller %s", deal.id, user_id, seller.id)
    set_offer_status(db, deal.id, "offer-sent")
    _notify(db, deal, "submit-buy-offer", user_id)
    _notify(db, deal, "pay-to-continue-buy-sell-trade", seller.id)
    return ServiceResult.ok({"buy_offer_id": deal.id})

# ============== Deal lifecycle ==============

def _deal_role(deal: BuySellCard, user_id: int) -> Optional[str]:
    if user_id == deal.buyer:
        return BUYER
    if user_id == deal.seller:
        return SELLER
    return None

def _load_deal(db: Session, deal_id: int, user_id: int, role: Optional[str] = None, statuses=None):
    deal = db.query(BuySellCard).filter(BuySellCard.id == deal_id).first()
    if deal is None:
        return None, ServiceResult.fail("Buy/sell transaction not found", 404)
    actual_role = _deal_role(deal, user_id)
    if actual_role is None or (role is not None and actual_role != role):
        return None, ServiceResult.fail("You are not allowed to perform this action on this transaction", 403)
    if statuses is not None and deal.buying_status not in statuses:
        return None, ServiceResult.fail(
            f"This action is not available while the transaction is {deal.buying_status.value}", 400
        )
    return deal, None

def list_deals(db: Session, user_id: int, role: str, status: Optional[BuyingStatus], page: int, per_page: int):
    query = db.query(BuySellCard)
    if role == BUYER:
        query = query.filter(BuySellCard.buyer == user_id)
    elif role == SELLER:
        query = query.filter(BuySellCard.seller == user_id)
    else:
        query = query.filter(or_(BuySellCard.buyer == user_id, BuySellCard.seller == user_id))
    if status is not None:
        query = query.filter(BuySellCard.buying_status == status)

    total = query.count()
    rows = (
        query.order_by(BuySellCard.created_at.desc(), BuySellCard.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return rows, total

def get_deal(db: Session, deal_id: int, user_id: int) -> ServiceResult:
    deal, failure = _load_deal(db, deal_id, user_id)
    if failure:
        return failure
    return ServiceResult.ok(deal)

def _release_cards(db: Session, deal: BuySellCard):
    card_ids = deal.card_ids
    if card_ids:
        db.query(TradingCard).filter(TradingCard.id.in_(card_ids)).update(
            {TradingCard.is_traded: "0"}, synchronize_session=False
        )

def _cancel_open_trades(db: Session, owner_id: int, card_ids) -> list:
    """Cancel open trade proposals involving ``owner_id`` that include any of ``card_ids``."""
    wanted = set(card_ids)
    cancelled = []
    open_proposals = (
        db.query(TradeProposal)
        .filter(TradeProposal.trade_status.in_((TradeStatus.new, TradeStatus.counter_offer)))
        .filter(or_(TradeProposal.trade_sent_by == owner_id, TradeProposal.trade_sent_to == owner_id))
        .all()
    )
    for proposal in open_proposals:
        if wanted & (set(proposal.send_card_ids) | set(proposal.receive_card_ids)):
            proposal.trade_status = TradeStatus.cancel
            cancelled.append(proposal.id)
    return cancelled

def confirm_deal_payment(db: Session, deal_id: int, user_id: int, payload: PaymentConfirm) -> ServiceResult:
    deal, failure = _load_deal(db, deal_id, user_id, BUYER, (BuyingStatus.new,))
    if failure:
        return failure
    now = datetime.utcnow()
    deal.paid_amount = payload.amount if payload.amount is not None else deal.total_amount
    deal.amount_paid_on = now
    deal.amount_pay_id = payload.payment_id
    deal.amount_payer_id = payload.payer_id
    deal.amount_pay_status = "approved"
    deal.buying_status = BuyingStatus.purchased
    cancelled = _cancel_open_trades(db, deal.seller, deal.card_ids)
    failure = _commit(db, "confirm payment for deal", deal.id)
    if failure:
        return failure

    logger.info("Payment %s confirmed for deal %s; %d trade proposals cancelled", payload.payment_id, deal.id, len(cancelled))
    for proposal_id in cancelled:
        outcome = set_trade_proposal_status(db, proposal_id, "trade-cancelled")
        if not outcome.success:
            logger.error("Status trade-cancelled not applied to trade %s: %s", proposal_id, outcome.error)
    return _finish(db, deal, user_id, "payment-made", "buy-sell-payment-made")

def cancel_deal(db: Session, deal_id: int, user_id: int) -> ServiceResult:
    deal, failure = _load_deal(db, deal_id, user_id, BUYER, (BuyingStatus.new,))
    if failure:
        return failure
    deal.buying_status = BuyingStatus.cancelled
    _release_cards(db, deal)
    failure = _commit(db, "cancel deal", deal.id)
    if failure:
        return failure
    return _finish(db, deal, user_id, "offer-cancelled", "buy-sell-offer-cancelled")

def decline_deal(db: Session, deal_id: int, user_id: int) -> ServiceResult:
    deal, failure = _load_deal(db, deal_id, user_id, SELLER, (BuyingStatus.new,))
    if failure:
        return failure
    deal.buying_status = BuyingStatus.declined
    _release_cards(db, deal)
    failure = _commit(db, "decline deal", deal.id)
    if failure:
        return failure
    return _finish(db, deal, user_id, "offer-declined", "buy-sell-offer-declined")

def ship_deal(db: Session, deal_id: int, user_id: int, payload: DealShipment) -> ServiceResult:
    deal, failure = _load_deal(db, deal_id, user_id, SELLER, (BuyingStatus.purchased,))
    if failure:
        return failure
    shipment = (
        db.query(Shipment)
        .filter(Shipment.buy_sell_id == deal.id, Shipment.user_id == user_id)
        .first()
    )
    if shipment is None:
        shipment = Shipment(user_id=user_id, buy_sell_id=deal.id)
        db.add(shipment)
    shipment.tracking_id = payload.track_id
    shipment.carrier = payload.carrier
    deal.track_id = payload.track_id
    deal.shipped_on = datetime.utcnow()
    deal.buying_status = BuyingStatus.dispatched
    failure = _commit(db, "ship deal", deal.id)
    if failure:
        return failure
    return _finish(db, deal, user_id, "product-shipped", "buy-sell-product-shipped")

def confirm_receipt(db: Session, deal_id: int, user_id: int) -> ServiceResult:
    deal, failure = _load_deal(db, deal_id, user_id, BUYER, (BuyingStatus.dispatched, BuyingStatus.delivered))
    if failure:
        return failure
    if deal.delivered_on is None:
        deal.delivered_on = datetime.utcnow()
    deal.buying_status = BuyingStatus.confirmed_by_buyer
    failure = _commit(db, "confirm receipt for deal", deal.id)
    if failure:
        return failure
    logger.info("Deal %s received by buyer %s", deal.id, user_id)
    return _finish(db, deal, user_id, "buyer-confirmed-receipt", "buy-sell-received")
