from __future__ import annotations
import asyncio
import logging

from pymongo.errors import PyMongoError

from config import settings
from database import CONTACTS, create_document
from errors import PersistenceError, PersistenceTimeoutError
from notifications import NotificationDispatcher
from schemas import ContactSubmission
from validation import validate_contact

logger = logging.getLogger(__name__)


async def save_contact(submission: ContactSubmission, dispatcher: NotificationDispatcher) -> str:
    contact = validate_contact(submission)
    try:
        contact_id = await asyncio.wait_for(
            create_document(CONTACTS, contact.model_dump()),
            timeout=settings.ORDER_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError as e:
        raise PersistenceTimeoutError("Database timeout") from e
    except PyMongoError as e:
        logger.exception("Failed to save contact form from %s", contact.email)
        raise PersistenceError("Failed to save contact form") from e

    logger.info("Contact form saved with ID: %s", contact_id)
    dispatcher.enqueue("contact", contact.model_dump())
    return contact_id
