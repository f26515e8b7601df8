# checkout_api/app/models/order.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_order_id() -> str:
    return str(uuid.uuid4())


class _CamelModel(BaseModel):
    """Stored and served with camelCase keys; constructed with snake_case in code."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----------------------------
# Enums
# ----------------------------

class OrderStatus(str, Enum):
    PLACED = "PLACED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class CheckoutState(str, Enum):
    """Where an order sits in the order -> payment session -> linkage sequence."""
    PENDING_PAYMENT_SESSION = "PENDING_PAYMENT_SESSION"
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_FAILED = "SESSION_FAILED"


# ----------------------------
# Catalog
# ----------------------------

class Store(_CamelModel):
    id: str
    name: str = ""


class MenuItem(_CamelModel):
    id: str
    store_id: str
    name: str
    description: Optional[str] = None
    price_cents: int = Field(..., ge=0)
    cost_cents: int = Field(default=0, ge=0)
    is_available: bool = True


# ----------------------------
# Orders
# ----------------------------

class OrderItem(_CamelModel):
    """Frozen copy of a menu item at purchase time."""
    menu_item_id: str
    name_snapshot: str
    price_cents_snapshot: int
    cost_cents_snapshot: int
    quantity: int

    @classmethod
    def snapshot(cls, item: MenuItem, quantity: int) -> "OrderItem":
        return cls(
            menu_item_id=item.id,
            name_snapshot=item.name,
            price_cents_snapshot=item.price_cents,
            cost_cents_snapshot=item.cost_cents,
            quantity=quantity,
        )


class Order(_CamelModel):
    id: str = Field(default_factory=new_order_id)
    store_id: str
    order_number: int
    customer_phone_e164: str
    consent_call: bool = False
    consent_sms: bool = False
    status: OrderStatus = OrderStatus.PLACED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    checkout_state: CheckoutState = CheckoutState.PENDING_PAYMENT_SESSION
    subtotal_cents: int
    tax_cents: int = 0
    tip_cents: int = 0
    total_cents: int
    currency: str = "usd"
    stripe_checkout_session_id: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def public_view(self) -> dict:
        """Order as shown to the customer: no cost snapshots."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude={"items": {"__all__": {"cost_cents_snapshot"}}},
        )
