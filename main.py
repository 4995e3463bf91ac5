from __future__ import annotations
import asyncio
import logging
import math
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from admin import list_contacts, list_orders, list_referrals, require_admin
from config import settings
from contacts import save_contact
from database import ensure_indexes, get_db
from errors import PersistenceError, PersistenceTimeoutError, ValidationError
from notifications import NotificationDispatcher, notify
from orders import submit_order
from ratelimit import RateLimiter
from referrals import create_referral_code
from schemas import (
    ContactMessage,
    ContactSubmission,
    NotifyRequest,
    OrderRecord,
    OrderSubmission,
    ReferralRecord,
    ReferralRequest,
)
from validation import validate_referral_request

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await ensure_indexes()
    except PyMongoError:
        logger.exception("Could not create indexes")
    app.state.dispatcher = NotificationDispatcher()
    app.state.dispatcher.start()
    app.state.order_limiter = RateLimiter(
        settings.ORDER_RATE_LIMIT_MAX_REQUESTS, settings.ORDER_RATE_LIMIT_WINDOW_SECONDS
    )
    app.state.form_limiter = RateLimiter(settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
    yield
    await app.state.dispatcher.stop()


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error responses


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": exc.message, "rule": exc.rule})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=500, content={"error": "Failed to save your request. Please try again later."})


@app.exception_handler(PersistenceTimeoutError)
async def timeout_error_handler(request: Request, exc: PersistenceTimeoutError):
    return JSONResponse(
        status_code=504,
        content={"error": "The request timed out. Please check with us before submitting again."},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("Malformed payload on %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "rule": "malformed_payload"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


# Dependencies


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _enforce(limiter: RateLimiter, request: Request, message: str) -> None:
    wait = limiter.hit(client_key(request))
    if wait is not None:
        seconds = max(1, math.ceil(wait))
        logger.warning("Rate limit hit on %s by %s", request.url.path, client_key(request))
        raise HTTPException(
            status_code=429,
            detail=f"{message} Retry after {seconds} seconds.",
            headers={"Retry-After": str(seconds)},
        )


async def order_rate_limit(request: Request) -> None:
    _enforce(request.app.state.order_limiter, request, "Too many orders. Please wait before submitting another.")


async def form_rate_limit(request: Request) -> None:
    _enforce(request.app.state.form_limiter, request, "Too many requests.")


# Response models


class SubmitOut(BaseModel):
    success: bool = True
    id: str


class ReferralOut(BaseModel):
    success: bool = True
    referral_code: str
    id: str


class OrdersOut(BaseModel):
    success: bool = True
    orders: list[OrderRecord]


class ReferralsOut(BaseModel):
    success: bool = True
    referrals: list[ReferralRecord]


class ContactsOut(BaseModel):
    success: bool = True
    contacts: list[ContactMessage]


class AdminDataOut(BaseModel):
    contacts: list[ContactMessage]
    orders: list[OrderRecord]
    timestamp: datetime


# Routes


@app.get("/")
async def root():
    return {"message": "Storefront Backend Running"}


@app.get("/test")
async def test():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": settings.DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        db = await get_db()
        response["collections"] = (await db.list_collection_names())[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


@app.post("/orders", response_model=SubmitOut, dependencies=[Depends(order_rate_limit)])
async def create_order(
    payload: OrderSubmission,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    order_id = await submit_order(payload, dispatcher)
    return SubmitOut(id=order_id)


@app.post("/referrals", response_model=ReferralOut, dependencies=[Depends(form_rate_limit)])
async def create_referral(payload: ReferralRequest):
    request = validate_referral_request(payload)
    created = await create_referral_code(request.email, request.name)
    return ReferralOut(**created)


@app.post("/contact", response_model=SubmitOut, dependencies=[Depends(form_rate_limit)])
async def create_contact(
    payload: ContactSubmission,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    contact_id = await save_contact(payload, dispatcher)
    return SubmitOut(id=contact_id)


@app.post("/notify", dependencies=[Depends(form_rate_limit)])
async def send_notification(payload: NotifyRequest):
    if payload.type not in ("contact", "order"):
        raise HTTPException(status_code=400, detail="Invalid email type")
    result = await notify(payload.type, payload.data)
    if not result.success:
        return JSONResponse(status_code=500, content={"error": result.error})
    return {"success": True, "id": result.id}


@app.get("/admin/orders", response_model=OrdersOut, dependencies=[Depends(require_admin)])
async def admin_orders():
    return OrdersOut(orders=await list_orders())


@app.get("/admin/referrals", response_model=ReferralsOut, dependencies=[Depends(require_admin)])
async def admin_referrals():
    return ReferralsOut(referrals=await list_referrals())


@app.get("/admin/contacts", response_model=ContactsOut, dependencies=[Depends(require_admin)])
async def admin_contacts():
    return ContactsOut(contacts=await list_contacts())


@app.get("/admin/data", response_model=AdminDataOut, dependencies=[Depends(require_admin)])
async def admin_data():
    contacts, orders = await asyncio.gather(list_contacts(), list_orders())
    return AdminDataOut(contacts=contacts, orders=orders, timestamp=datetime.now(timezone.utc))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
