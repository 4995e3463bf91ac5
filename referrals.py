"""
Referral code issuer and referral ledger.

A referral record is created once and afterwards only grows: every completed
order carrying its code appends one customer email and one order id and adds
the record's bonus, all in a single atomic update (see ``database.credit_referral``).
The bonus is fixed on the record when the code is issued, so
``total_earnings == len(completed_orders) * bonus_per_referral`` holds at every
point even if ``BONUS_PER_REFERRAL`` is changed later.
"""
from __future__ import annotations
import enum
import logging
import secrets
import string
from typing import Any, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from config import settings
from database import REFERRALS, create_document, credit_referral, find_document
from errors import PersistenceError

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


class ReferralOutcome(str, enum.Enum):
    CREDITED = "credited"
    ALREADY_CREDITED = "already_credited"
    UNKNOWN_CODE = "unknown_code"


def generate_referral_code(length: Optional[int] = None) -> str:
    length = length or settings.REFERRAL_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


async def create_referral_code(email: str, name: str) -> dict[str, str]:
    """
    Issue a fresh referral code for ``email``/``name``.

    Uniqueness is enforced by the unique index on ``referral_code``; a
    collision regenerates the code, up to ``REFERRAL_CODE_ATTEMPTS`` times.
    """
    for attempt in range(1, settings.REFERRAL_CODE_ATTEMPTS + 1):
        code = generate_referral_code()
        try:
            referral_id = await create_document(REFERRALS, {
                "referral_code": code,
                "referrer_email": email,
                "referrer_name": name,
                "referred_customers": [],
                "completed_orders": [],
                "total_earnings": 0.0,
                "bonus_per_referral": settings.BONUS_PER_REFERRAL,
            })
        except DuplicateKeyError:
            logger.warning("Referral code collision on attempt %d, regenerating", attempt)
            continue
        except PyMongoError as e:
            logger.exception("Failed to create referral code for %s", email)
            raise PersistenceError("Failed to create referral code") from e
        logger.info("Referral code %s created for %s", code, email)
        return {"referral_code": code, "id": referral_id}
    raise PersistenceError("Could not allocate a unique referral code")


async def get_referral(code: str) -> Optional[dict[str, Any]]:
    try:
        return await find_document(REFERRALS, {"referral_code": code})
    except PyMongoError as e:
        raise PersistenceError("Failed to read referral") from e


async def apply_referral(code: str, customer_email: str, order_id: str) -> ReferralOutcome:
    try:
        existing = await find_document(REFERRALS, {"referral_code": code})
        if existing is None:
            logger.warning("Referral code %r on order %s does not resolve to a referrer", code, order_id)
            return ReferralOutcome.UNKNOWN_CODE
        bonus = existing.get("bonus_per_referral", settings.BONUS_PER_REFERRAL)
        credited = await credit_referral(code, customer_email, order_id, bonus)
    except PyMongoError as e:
        raise PersistenceError("Failed to update referral") from e

    if credited:
        logger.info("Referral %s credited for order %s", code, order_id)
        return ReferralOutcome.CREDITED
    logger.info("Order %s already credited to referral %s", order_id, code)
    return ReferralOutcome.ALREADY_CREDITED
