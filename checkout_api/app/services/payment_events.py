# checkout_api/app/services/payment_events.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from checkout_api.app.models.order import CheckoutState, Order, OrderStatus, PaymentStatus
from checkout_api.app.services.order_store import OrderStore

log = logging.getLogger(__name__)

# event type -> payment status it moves the order to
_TRANSITIONS: Dict[str, PaymentStatus] = {
    "checkout.session.completed": PaymentStatus.PAID,
    "checkout.session.async_payment_succeeded": PaymentStatus.PAID,
    "checkout.session.async_payment_failed": PaymentStatus.FAILED,
    "checkout.session.expired": PaymentStatus.FAILED,
}


async def _order_for_session(store: OrderStore, session: Dict[str, Any]) -> Optional[Order]:
    order_id = (session.get("metadata") or {}).get("orderId")
    if order_id:
        order = await store.get_order(order_id)
        if order is not None:
            return order
    session_id = session.get("id")
    if session_id:
        return await store.find_order_by_session(session_id)
    return None


async def apply_checkout_event(store: OrderStore, event: Dict[str, Any]) -> Optional[Order]:
    """
    Move an order's payment status according to a verified Stripe event.
    Returns the updated order, or None when the event is ignored.

    - completed only counts when Stripe reports payment_status == "paid";
      delayed methods arrive later as async_payment_succeeded / _failed.
    - a PAID order is never moved back to FAILED.
    - a payment for an order the reconciler already cancelled reopens it as
      PLACED; the customer has paid, so the order must be fulfilled.
    """
    etype = event.get("type", "")
    target = _TRANSITIONS.get(etype)
    if target is None:
        return None

    session = (event.get("data") or {}).get("object") or {}
    if etype == "checkout.session.completed" and session.get("payment_status") != "paid":
        log.info("session %s completed without payment yet; waiting for async event", session.get("id"))
        return None

    order = await _order_for_session(store, session)
    if order is None:
        log.warning("stripe event %s for unknown order (session %s)", etype, session.get("id"))
        return None

    if order.payment_status == PaymentStatus.PAID and target != PaymentStatus.PAID:
        log.warning("ignoring %s for already paid order %s", etype, order.id)
        return None

    changes: Dict[str, Any] = {"payment_status": target}
    if not order.stripe_checkout_session_id and session.get("id"):
        # linkage never landed; the event proves the session exists
        changes["stripe_checkout_session_id"] = session["id"]
        changes["checkout_state"] = CheckoutState.SESSION_CREATED
    if target == PaymentStatus.PAID and order.status == OrderStatus.CANCELLED:
        log.warning("order %s was cancelled but %s says it is paid; reopening", order.id, etype)
        changes["status"] = OrderStatus.PLACED
        changes["checkout_state"] = CheckoutState.SESSION_CREATED
    updated = await store.update_order(order.id, **changes)
    log.info("order %s payment %s via %s", order.id, target.value, etype)
    return updated
