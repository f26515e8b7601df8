from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class LineItem:
    """One priced row on the hosted checkout page."""

    name: str
    unit_amount: int
    quantity: int
    currency: str = "usd"
    description: Optional[str] = None

    def to_stripe(self) -> Dict[str, Any]:
        product: Dict[str, Any] = {"name": self.name}
        if self.description:
            product["description"] = self.description
        return {
            "price_data": {
                "currency": self.currency,
                "product_data": product,
                "unit_amount": self.unit_amount,
            },
            "quantity": self.quantity,
        }


@dataclass
class CheckoutSession:
    id: str
    url: str


@dataclass
class SessionStatus:
    id: str
    status: Optional[str]  # open | complete | expired
    payment_status: Optional[str]  # paid | unpaid | no_payment_required
