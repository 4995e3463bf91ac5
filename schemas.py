"""
Database Schemas for the storefront

Each record model maps to a MongoDB collection:
- orders     -> OrderRecord
- referrals  -> ReferralRecord
- contacts   -> ContactMessage

Submission models are deliberately loose (everything optional) so the
validation layer can report the first broken rule instead of a schema dump.
"""
from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

Category = Literal["kids", "ladies", "mens", "hair"]
OrderStatus = Literal["pending", "paid", "shipped", "delivered", "cancelled"]


class CartLineItem(BaseModel):
    item_id: str
    item_name: str
    category: Category
    image: str = ""
    quantity: int = Field(ge=1, default=1)
    selected_size: str = ""
    price: float = Field(ge=0, description="Unit price")


class OrderSubmission(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    delivery_address: Optional[str] = None
    cart_items: list[CartLineItem] = Field(default_factory=list)
    total_price: Optional[float] = None
    total_quantity: Optional[int] = None
    payment_id: Optional[str] = None
    referral_code: Optional[str] = None


class ValidatedOrder(BaseModel):
    customer_name: str
    customer_email: str
    customer_whatsapp: str
    delivery_address: str
    cart_items: list[CartLineItem]
    total_price: float
    total_quantity: int
    payment_id: str
    referral_code: Optional[str] = None


class OrderRecord(ValidatedOrder):
    id: str
    status: OrderStatus = "paid"
    created_at: datetime
    updated_at: datetime


class ContactSubmission(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None


class ContactInput(BaseModel):
    name: str
    email: str
    message: str


class ContactMessage(ContactInput):
    id: str
    created_at: datetime


class ReferralRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class ReferralRecord(BaseModel):
    id: str
    referral_code: str
    referrer_email: str
    referrer_name: str
    referred_customers: list[str] = Field(default_factory=list)
    completed_orders: list[str] = Field(default_factory=list)
    total_earnings: float = 0
    bonus_per_referral: Optional[float] = None
    created_at: datetime
    updated_at: datetime


class NotifyRequest(BaseModel):
    type: str
    data: dict = Field(default_factory=dict)
