from __future__ import annotations
from typing import Any

from schemas import CartLineItem, OrderSubmission


class RecordingDispatcher:
    def __init__(self):
        self.sent: list[tuple[str, dict[str, Any]]] = []

    def enqueue(self, kind: str, payload: dict[str, Any]) -> bool:
        self.sent.append((kind, payload))
        return True

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.sent]


def line(price: float = 10, quantity: int = 1, item_id: str = "kids-1", size: str = "M") -> CartLineItem:
    return CartLineItem(
        item_id=item_id,
        item_name=f"Tracksuit {item_id}",
        category="kids",
        image=f"Kids/{item_id}.png",
        quantity=quantity,
        selected_size=size,
        price=price,
    )


def submission(**overrides: Any) -> OrderSubmission:
    data: dict[str, Any] = {
        "name": "Ada Obi",
        "email": "ada@example.com",
        "whatsapp": "+2348000000000",
        "delivery_address": "12 Marina Road, Lagos",
        "cart_items": [line(10, 2, "kids-1"), line(10, 1, "mens-4", "L")],
        "payment_id": "PAYID-123",
    }
    data.update(overrides)
    return OrderSubmission(**data)
