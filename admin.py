"""
Admin read API.

Access control is a bearer token compared against ``ADMIN_TOKEN``. With no
token configured every request is refused.
"""
from __future__ import annotations
import secrets
from typing import Optional

from fastapi import Header, HTTPException
from pymongo.errors import PyMongoError

from config import settings
from database import CONTACTS, ORDERS, REFERRALS, get_documents
from errors import PersistenceError
from schemas import ContactMessage, OrderRecord, ReferralRecord


def require_admin(authorization: Optional[str] = Header(None)) -> None:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization[len("Bearer "):].strip()
    expected = settings.ADMIN_TOKEN
    if not expected or not secrets.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


async def _recent(collection_name: str, limit: Optional[int]) -> list[dict]:
    try:
        return await get_documents(collection_name, limit=limit or settings.ADMIN_LIST_LIMIT, newest_first=True)
    except PyMongoError as e:
        raise PersistenceError(f"Failed to fetch {collection_name}") from e


async def list_orders(limit: Optional[int] = None) -> list[OrderRecord]:
    return [OrderRecord(**d) for d in await _recent(ORDERS, limit)]


async def list_referrals(limit: Optional[int] = None) -> list[ReferralRecord]:
    return [ReferralRecord(**d) for d in await _recent(REFERRALS, limit)]


async def list_contacts(limit: Optional[int] = None) -> list[ContactMessage]:
    return [ContactMessage(**d) for d in await _recent(CONTACTS, limit)]
