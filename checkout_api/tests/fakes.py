from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from checkout_api.app.core.errors import WebhookVerificationError
from checkout_api.app.models.order import (
    CheckoutState,
    MenuItem,
    Order,
    OrderStatus,
    PaymentStatus,
    Store,
    utcnow,
)
from checkout_api.app.models.payment import CheckoutSession, LineItem, SessionStatus


class InMemoryOrderStore:
    """Dict-backed OrderStore with the same observable behaviour as the Redis one."""

    def __init__(self) -> None:
        self.stores: Dict[str, Store] = {}
        self.menu: Dict[str, Dict[str, MenuItem]] = {}
        self.orders: Dict[str, Order] = {}
        self.sequences: Dict[str, int] = {}
        self.fail_updates = False

    async def get_store(self, store_id: str) -> Optional[Store]:
        return self.stores.get(store_id)

    async def put_store(self, store: Store) -> None:
        self.stores[store.id] = store

    async def put_menu_item(self, item: MenuItem) -> None:
        self.menu.setdefault(item.store_id, {})[item.id] = item

    async def find_available_menu_items(self, store_id: str, ids: Sequence[str]) -> List[MenuItem]:
        catalog = self.menu.get(store_id, {})
        out = []
        for i in dict.fromkeys(ids):
            item = catalog.get(i)
            if item is not None and item.is_available:
                out.append(item)
        return out

    async def next_order_number(self, store_id: str) -> int:
        if store_id not in self.sequences:
            existing = [o.order_number for o in self.orders.values() if o.store_id == store_id]
            self.sequences[store_id] = max(existing, default=0)
        self.sequences[store_id] += 1
        return self.sequences[store_id]

    async def create_order(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    async def update_order(self, order_id: str, **changes: Any) -> Optional[Order]:
        if self.fail_updates:
            raise RuntimeError("store unavailable")
        current = self.orders.get(order_id)
        if current is None:
            return None
        updated = Order.model_validate({**current.model_dump(), **changes, "updated_at": utcnow()})
        self.orders[order_id] = updated
        return updated

    async def get_order(self, order_id: str) -> Optional[Order]:
        return self.orders.get(order_id)

    async def find_order_by_session(self, session_id: str) -> Optional[Order]:
        for o in self.orders.values():
            if o.stripe_checkout_session_id == session_id:
                return o
        return None

    async def list_orders_in_state(self, state: CheckoutState, older_than: datetime) -> List[Order]:
        # settled orders drop out of the state index, as in Redis
        return [
            o
            for o in self.orders.values()
            if o.checkout_state == state
            and o.created_at <= older_than
            and o.status == OrderStatus.PLACED
            and o.payment_status == PaymentStatus.PENDING
        ]


class FakePaymentProvider:
    """Records every session request; optionally fails."""

    def __init__(self, *, fail_with: Optional[Exception] = None) -> None:
        self.fail_with = fail_with
        self.calls: List[Dict[str, Any]] = []
        self.sessions: Dict[str, SessionStatus] = {}
        self.webhook_secret = "whsec_test"

    async def create_checkout_session(
        self,
        *,
        line_items: Sequence[LineItem],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> CheckoutSession:
        self.calls.append(
            {
                "line_items": list(line_items),
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": dict(metadata),
            }
        )
        if self.fail_with is not None:
            raise self.fail_with
        sid = f"cs_test_{len(self.calls)}"
        self.sessions[sid] = SessionStatus(id=sid, status="open", payment_status="unpaid")
        return CheckoutSession(id=sid, url=f"https://checkout.stripe.test/pay/{sid}")

    async def retrieve_session(self, session_id: str) -> SessionStatus:
        return self.sessions[session_id]

    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if signature != self.webhook_secret:
            raise WebhookVerificationError()
        return json.loads(payload)


def seed_store(
    store: InMemoryOrderStore,
    store_id: str = "store-1",
    items: Optional[List[MenuItem]] = None,
) -> None:
    store.stores[store_id] = Store(id=store_id, name="Corner Cafe")
    for item in items or []:
        store.menu.setdefault(item.store_id, {})[item.id] = item
