from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Optional

from config import settings
from schemas import CartLineItem


@dataclass(frozen=True)
class MinimumOrderPolicy:
    quantity: int
    amount: float

    @classmethod
    def from_settings(cls) -> "MinimumOrderPolicy":
        return cls(quantity=settings.MIN_ORDER_QUANTITY, amount=settings.MIN_ORDER_AMOUNT)


def compute_total_price(items: Iterable[CartLineItem]) -> float:
    return round(sum(item.price * item.quantity for item in items), 2)


def compute_total_quantity(items: Iterable[CartLineItem]) -> int:
    return sum(item.quantity for item in items)


def meets_minimum_order(
    total_quantity: int,
    total_price: float,
    policy: Optional[MinimumOrderPolicy] = None,
) -> bool:
    policy = policy or MinimumOrderPolicy.from_settings()
    return total_quantity >= policy.quantity and total_price >= policy.amount


@dataclass
class Cart:
    """In-progress cart, keyed by item id and size."""

    items: list[CartLineItem] = field(default_factory=list)

    def _index(self, item_id: str, size: str) -> Optional[int]:
        for i, line in enumerate(self.items):
            if line.item_id == item_id and line.selected_size == size:
                return i
        return None

    def add(self, item: CartLineItem) -> None:
        i = self._index(item.item_id, item.selected_size)
        if i is None:
            self.items.append(item)
        else:
            existing = self.items[i]
            self.items[i] = existing.model_copy(update={"quantity": existing.quantity + item.quantity})

    def remove(self, item_id: str, size: str) -> None:
        i = self._index(item_id, size)
        if i is not None:
            del self.items[i]

    def set_quantity(self, item_id: str, size: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(item_id, size)
            return
        i = self._index(item_id, size)
        if i is not None:
            self.items[i] = self.items[i].model_copy(update={"quantity": quantity})

    @property
    def total_price(self) -> float:
        return compute_total_price(self.items)

    @property
    def total_quantity(self) -> int:
        return compute_total_quantity(self.items)

    def meets_minimum(self, policy: Optional[MinimumOrderPolicy] = None) -> bool:
        return meets_minimum_order(self.total_quantity, self.total_price, policy)
