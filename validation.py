"""
Validation layer for inbound submissions.

Every check runs before anything is written. The first broken rule is
reported; nothing is partially accepted.

The email check is a shape check (``local@domain.tld``) and nothing more. It
is not RFC 5322 validation.
"""
from __future__ import annotations
import re
from typing import Optional

from errors import ValidationError
from pricing import MinimumOrderPolicy, compute_total_price, compute_total_quantity
from schemas import (
    ContactInput,
    ContactSubmission,
    OrderSubmission,
    ReferralRequest,
    ValidatedOrder,
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_FIELD = "required_field"
EMPTY_CART = "empty_cart"
INVALID_EMAIL = "invalid_email"
MIN_QUANTITY = "min_quantity"
MIN_AMOUNT = "min_amount"
TOTALS_MISMATCH = "totals_mismatch"


def sanitize(value: Optional[str]) -> str:
    return (value or "").strip().replace("<", "").replace(">", "")


def normalize_email(value: Optional[str]) -> str:
    return sanitize(value).lower()


def is_valid_email(email: str) -> bool:
    return EMAIL_RE.match(email) is not None


def _require(fields: dict[str, str]) -> None:
    for label, value in fields.items():
        if not value:
            raise ValidationError(REQUIRED_FIELD, f"{label} is required")


def _check_email(email: str) -> None:
    if not is_valid_email(email):
        raise ValidationError(INVALID_EMAIL, "Please enter a valid email address")


def validate_order_submission(
    submission: OrderSubmission,
    policy: Optional[MinimumOrderPolicy] = None,
) -> ValidatedOrder:
    policy = policy or MinimumOrderPolicy.from_settings()

    name = sanitize(submission.name)
    email = normalize_email(submission.email)
    whatsapp = sanitize(submission.whatsapp)
    address = sanitize(submission.delivery_address)
    _require({
        "Name": name,
        "Email": email,
        "WhatsApp or phone number": whatsapp,
        "Delivery address": address,
    })

    if not submission.cart_items:
        raise ValidationError(EMPTY_CART, "Your cart is empty")

    _check_email(email)

    total_quantity = compute_total_quantity(submission.cart_items)
    total_price = compute_total_price(submission.cart_items)
    if total_quantity < policy.quantity:
        raise ValidationError(MIN_QUANTITY, f"Minimum {policy.quantity} items required")
    if total_price < policy.amount:
        raise ValidationError(MIN_AMOUNT, f"Minimum order amount is ${policy.amount:.2f}")

    if submission.total_quantity is not None and submission.total_quantity != total_quantity:
        raise ValidationError(TOTALS_MISMATCH, "Order total quantity does not match the cart")
    if submission.total_price is not None and round(submission.total_price, 2) != total_price:
        raise ValidationError(TOTALS_MISMATCH, "Order total price does not match the cart")

    payment_id = sanitize(submission.payment_id)
    _require({"Payment reference": payment_id})

    return ValidatedOrder(
        customer_name=name,
        customer_email=email,
        customer_whatsapp=whatsapp,
        delivery_address=address,
        cart_items=[
            item.model_copy(update={
                "item_id": sanitize(item.item_id),
                "item_name": sanitize(item.item_name),
                "image": item.image.strip(),
                "selected_size": sanitize(item.selected_size),
            })
            for item in submission.cart_items
        ],
        total_price=total_price,
        total_quantity=total_quantity,
        payment_id=payment_id,
        referral_code=sanitize(submission.referral_code).upper() or None,
    )


def validate_contact(submission: ContactSubmission) -> ContactInput:
    name = sanitize(submission.name)
    email = normalize_email(submission.email)
    message = sanitize(submission.message)
    _require({"Name": name, "Email": email, "Message": message})
    _check_email(email)
    return ContactInput(name=name, email=email, message=message)


def validate_referral_request(request: ReferralRequest) -> ReferralRequest:
    name = sanitize(request.name)
    email = normalize_email(request.email)
    if not email or not name:
        raise ValidationError(REQUIRED_FIELD, "Email and name are required")
    _check_email(email)
    return ReferralRequest(email=email, name=name)
