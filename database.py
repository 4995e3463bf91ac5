from __future__ import annotations
from typing import Any, Optional
from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import DESCENDING

from config import settings

ORDERS = "orders"
REFERRALS = "referrals"
CONTACTS = "contacts"

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
    return _db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _with_id(doc: dict[str, Any]) -> dict[str, Any]:
    doc["id"] = str(doc.pop("_id"))
    return doc


async def ensure_indexes() -> None:
    db = await get_db()
    await db[REFERRALS].create_index("referral_code", unique=True)
    for name in (ORDERS, REFERRALS, CONTACTS):
        await db[name].create_index([("created_at", DESCENDING)])


async def create_document(collection_name: str, data: dict[str, Any]) -> str:
    """Insert ``data`` stamped with ``created_at``/``updated_at`` and return the new id."""
    db = await get_db()
    now = utcnow()
    data_with_meta = {**data, "created_at": now, "updated_at": now}
    result = await db[collection_name].insert_one(data_with_meta)
    return str(result.inserted_id)


async def get_document(collection_name: str, document_id: str) -> Optional[dict[str, Any]]:
    db = await get_db()
    try:
        oid = ObjectId(document_id)
    except (InvalidId, TypeError):
        return None
    doc = await db[collection_name].find_one({"_id": oid})
    return _with_id(doc) if doc else None


async def find_document(collection_name: str, filter_dict: dict[str, Any]) -> Optional[dict[str, Any]]:
    db = await get_db()
    doc = await db[collection_name].find_one(filter_dict)
    return _with_id(doc) if doc else None


async def get_documents(
    collection_name: str,
    filter_dict: dict[str, Any] | None = None,
    limit: int = 100,
    newest_first: bool = False,
) -> list[dict[str, Any]]:
    db = await get_db()
    cursor = db[collection_name].find(filter_dict or {})
    if newest_first:
        cursor = cursor.sort("created_at", DESCENDING)
    cursor = cursor.limit(limit)
    docs = []
    async for d in cursor:
        docs.append(_with_id(d))
    return docs


async def credit_referral(code: str, customer_email: str, order_id: str, bonus: float) -> bool:
    """
    Atomically record one completed order against a referral record.

    Both lists grow and the earnings move in a single document update, so
    concurrent credits against the same code cannot lose an increment. ``bonus``
    must be the record's own ``bonus_per_referral`` so earnings stay a whole
    multiple of it. The filter skips records that already list ``order_id``.
    Returns whether a record was modified.
    """
    db = await get_db()
    result = await db[REFERRALS].update_one(
        {"referral_code": code, "completed_orders": {"$ne": order_id}},
        {
            "$push": {"referred_customers": customer_email, "completed_orders": order_id},
            "$inc": {"total_earnings": bonus},
            "$set": {"updated_at": utcnow()},
        },
    )
    return result.modified_count == 1
