from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from cardswap.routes import (
    addresses,
    admin,
    auth,
    buy_sell as buy_sell_routes,
    earn_credits,
    membership,
    notifications,
    reviews,
    shipments,
    support,
    trade,
    trading_cards,
    transactions,
    users,
)
from cardswap.database import engine, Base
from cardswap.config import settings
from cardswap.responses import api_response
# Every model must be imported before create_all so the tables and string relationships resolve
from cardswap.models import buy_sell, cart, mail, membership as membership_models, notification, shipment  # noqa: F401
from cardswap.models import support as support_models, trade_proposal, trading_card, user  # noqa: F401

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="CardSwap Trading Card Marketplace API")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create database tables for SQLAlchemy
Base.metadata.create_all(bind=engine)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    response = api_response(exc.status_code, False, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    return api_response(400, False, "Validation failed", errors)

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return api_response(500, False, "Internal server error")

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(trade.router, prefix="/api", tags=["Trade Proposals"])
app.include_router(reviews.router, prefix="/api", tags=["Reviews"])
app.include_router(buy_sell_routes.router, prefix="/api", tags=["Buy and Sell"])
app.include_router(addresses.router, prefix="/api/addresses", tags=["Addresses"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(shipments.router, prefix="/api/shipments", tags=["Shipments"])
app.include_router(membership.router, prefix="/api/membership", tags=["Memberships"])
app.include_router(transactions.router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(earn_credits.router, prefix="/api/earn-credits", tags=["Earn Credits"])
app.include_router(support.router, prefix="/api/support", tags=["Support"])
app.include_router(trading_cards.router, prefix="/api", tags=["Trading Cards"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin Operations"])

@app.get("/")
async def root():
    return {"message": "CardSwap Trading Card Marketplace API"}
