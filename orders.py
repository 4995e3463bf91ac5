"""
Order store writer and the order-submission workflow.

Within one submission the steps run strictly in order: validate, write the
order, credit the referral, queue notifications. Only validation and the
order write can fail the submission. Once the order is stored, referral and
email problems are logged and the caller still gets the order id.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Any, Optional

from pymongo.errors import PyMongoError

from config import settings
from database import ORDERS, create_document, get_document
from errors import PersistenceError, PersistenceTimeoutError
from notifications import NotificationDispatcher
from pricing import MinimumOrderPolicy
from referrals import apply_referral
from schemas import OrderSubmission, ValidatedOrder
from validation import validate_order_submission

logger = logging.getLogger(__name__)


def order_document(order: ValidatedOrder) -> dict[str, Any]:
    # referral_code is left out entirely when absent; referred_by is reserved and never written
    doc = order.model_dump(exclude={"referral_code"})
    doc["status"] = "paid"
    if order.referral_code:
        doc["referral_code"] = order.referral_code
    return doc


async def create_order(order: ValidatedOrder) -> str:
    try:
        order_id = await create_document(ORDERS, order_document(order))
    except PyMongoError as e:
        logger.exception("Failed to save order for %s", order.customer_email)
        raise PersistenceError("Failed to save order") from e
    logger.info("Order saved with ID: %s", order_id)
    return order_id


async def get_order(order_id: str) -> Optional[dict[str, Any]]:
    try:
        return await get_document(ORDERS, order_id)
    except PyMongoError as e:
        raise PersistenceError("Failed to read order") from e


async def _credit_referral(order: ValidatedOrder, order_id: str) -> None:
    # the order is already stored; nothing raised here may reach the caller
    try:
        await asyncio.wait_for(
            apply_referral(order.referral_code, order.customer_email, order_id),
            timeout=settings.REFERRAL_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error("Timed out crediting referral %s for order %s", order.referral_code, order_id)
    except Exception:
        logger.exception("Failed to credit referral %s for order %s", order.referral_code, order_id)


async def submit_order(
    submission: OrderSubmission,
    dispatcher: NotificationDispatcher,
    policy: Optional[MinimumOrderPolicy] = None,
) -> str:
    order = validate_order_submission(submission, policy)

    try:
        order_id = await asyncio.wait_for(create_order(order), timeout=settings.ORDER_TIMEOUT_SECONDS)
    except asyncio.TimeoutError as e:
        logger.error("Order write for %s exceeded %.1fs; outcome unknown", order.customer_email, settings.ORDER_TIMEOUT_SECONDS)
        raise PersistenceTimeoutError("Database timeout") from e

    if order.referral_code:
        await _credit_referral(order, order_id)

    payload = {"id": order_id, **order.model_dump()}
    dispatcher.enqueue("order", payload)
    dispatcher.enqueue("order_confirmation", payload)
    return order_id
