"""Shared fixtures: an in-memory SQLite database, a TestClient and model factories."""
import os
from functools import lru_cache

# Settings are read at import time, so the environment must be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from cardswap.main import app
from cardswap.database import Base, SessionLocal, engine, get_db
from cardswap.dependencies import create_access_token
from cardswap.models.buy_sell import BuyOfferStatus
from cardswap.models.shipment import Shipment
from cardswap.models.trade_proposal import TradeProposal, TradeProposalStatus, TradeStatus, join_card_ids
from cardswap.models.trading_card import Category, CategoryField, TradingCard
from cardswap.models.user import Address, User, UserRole
from cardswap.routes.auth import get_password_hash

# Hash each test password once per session
cached_password_hash = lru_cache()(get_password_hash)

STATUS_ALIASES = [
    "trade-sent",
    "trade-viewed",
    "trade-offer-updated",
    "trade-cancelled",
    "trade-accepted",
    "trade-offer-accepted-sender-pay",
    "trade-offer-accepted-receiver-pay",
    "counter-trade-offer",
    "counter-offer-viewed",
    "counter-offer-accepted",
    "counter-offer-accepted-sender-pay",
    "counter-offer-accepted-receiver-pay",
    "payment-made",
    "payment-confirmed",
    "shipped-by-sender",
    "shipped-by-receiver",
    "both-traders-shipped",
    "marked-trade-completed-by-sender",
    "marked-trade-completed-by-receiver",
    "both-marked-trade-completed",
]

OFFER_STATUS_ALIASES = [
    "offer-sent",
    "payment-made",
    "offer-cancelled",
    "offer-declined",
    "product-shipped",
    "buyer-confirmed-receipt",
]

@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    session.add_all([
        TradeProposalStatus(
            alias=alias,
            name=alias.replace("-", " ").title(),
            to_sender=f"sender sees {alias}",
            to_receiver=f"receiver sees {alias}",
        )
        for alias in STATUS_ALIASES
    ])
    session.add_all([
        BuyOfferStatus(alias=alias, name=alias.replace("-", " ").title(), to_sender=alias, to_receiver=alias)
        for alias in OFFER_STATUS_ALIASES
    ])
    session.commit()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client(db):
    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

def status_id(db, alias):
    return db.query(TradeProposalStatus.id).filter(TradeProposalStatus.alias == alias).scalar()

def current_alias(db, proposal_id):
    db.expire_all()
    proposal = db.query(TradeProposal).filter(TradeProposal.id == proposal_id).one()
    return proposal.proposal_status.alias if proposal.proposal_status else None

def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'user_id': user.id})}"}

@pytest.fixture
def alias_of(db):
    return lambda proposal_id: current_alias(db, proposal_id)

@pytest.fixture
def headers_for():
    return auth_headers

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(username=None, cxp_coins=50, role=UserRole.user, password="secret123"):
        counter["n"] += 1
        username = username or f"trader{counter['n']}"
        user = User(
            first_name=username.title(),
            last_name="Tester",
            username=username,
            email=f"{username}@example.com",
            password=cached_password_hash(password),
            user_role=role,
            cxp_coins=cxp_coins,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make

@pytest.fixture
def sports_category(db):
    category = Category(sport_name="Baseball", slug="baseball", card_kind="sports_card")
    db.add(category)
    db.flush()
    db.add_all([
        CategoryField(category_id=category.id, fields="player", is_required="1", priority=1, mark_as_title="1"),
        CategoryField(category_id=category.id, fields="season", is_required="0", priority=2, mark_as_title="1"),
        CategoryField(category_id=category.id, fields="manufacturer", priority=3),
        CategoryField(category_id=category.id, fields="graded", priority=4),
    ])
    db.commit()
    db.refresh(category)
    return category

@pytest.fixture
def make_card(db, sports_category):
    def _make(owner, title="Card", **fields):
        card = TradingCard(
            trader_id=owner.id,
            category_id=sports_category.id,
            title=title,
            search_param=title,
            trading_card_estimated_value=fields.pop("estimated_value", 10.0),
            attributes={"kind": "sports_card", "player": title},
            **fields,
        )
        db.add(card)
        db.commit()
        db.refresh(card)
        return card

    return _make

@pytest.fixture
def make_proposal(db):
    def _make(sender, receiver, send_cards=(), receive_cards=(), alias="trade-sent", **fields):
        proposal = TradeProposal(
            code="TRTEST",
            trade_sent_by=sender.id,
            trade_sent_to=receiver.id,
            send_cards=join_card_ids(send_cards),
            receive_cards=join_card_ids(receive_cards),
            trade_status=fields.pop("trade_status", TradeStatus.new),
            trade_proposal_status_id=status_id(db, alias) if alias else None,
            **fields,
        )
        db.add(proposal)
        db.commit()
        db.refresh(proposal)
        return proposal

    return _make

@pytest.fixture
def make_shipment(db):
    def _make(proposal, user, tracking_id="1Z999"):
        shipment = Shipment(user_id=user.id, trade_id=proposal.id, tracking_id=tracking_id)
        db.add(shipment)
        db.commit()
        db.refresh(shipment)
        return shipment

    return _make

@pytest.fixture
def make_address(db):
    def _make(user, country="United States", mark_default="1"):
        address = Address(
            user_id=user.id,
            street1="1 Main St",
            city="Springfield",
            zip="12345",
            country=country,
            mark_default=mark_default,
        )
        db.add(address)
        db.commit()
        db.refresh(address)
        return address

    return _make
