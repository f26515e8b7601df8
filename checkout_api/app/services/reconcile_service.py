# checkout_api/app/services/reconcile_service.py
"""
Repair orders left behind by a checkout that did not finish.

Three ways an order gets stuck:
  * PENDING_PAYMENT_SESSION past the grace period: the request died between
    writing the order and linking a Stripe session.
  * SESSION_FAILED: Stripe refused or was unreachable.
  * SESSION_CREATED but still PENDING past the grace period: the customer
    never finished, or we missed the webhook.

The first two are cancelled. The third asks Stripe for the session state.
Settled orders (cancelled, paid or failed) leave the state indexes, so a
sweep only ever loads orders that still need attention.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from checkout_api.app.core.metrics import reconcile_counter
from checkout_api.app.integrations.stripe.client import PaymentProvider
from checkout_api.app.models.order import CheckoutState, Order, OrderStatus, PaymentStatus, utcnow
from checkout_api.app.services.order_store import OrderStore

log = logging.getLogger(__name__)


async def _cancel(store: OrderStore, order: Order) -> None:
    await store.update_order(
        order.id,
        status=OrderStatus.CANCELLED,
        payment_status=PaymentStatus.FAILED,
        checkout_state=CheckoutState.SESSION_FAILED,
    )


async def _sync_from_stripe(store: OrderStore, payments: PaymentProvider, order: Order) -> Optional[str]:
    session = await payments.retrieve_session(order.stripe_checkout_session_id or "")
    if session.payment_status == "paid":
        await store.update_order(order.id, payment_status=PaymentStatus.PAID)
        return "paid"
    if session.status == "expired":
        await store.update_order(order.id, payment_status=PaymentStatus.FAILED)
        return "expired"
    return None


async def reconcile_once(
    store: OrderStore,
    payments: PaymentProvider,
    *,
    grace_seconds: int,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    One sweep. Returns counts per action; a failure on one order is logged
    and the sweep moves on to the next.
    """
    cutoff = (now or utcnow()) - timedelta(seconds=grace_seconds)
    stats = {"cancelled": 0, "paid": 0, "expired": 0, "errors": 0}

    orphaned = await store.list_orders_in_state(CheckoutState.PENDING_PAYMENT_SESSION, cutoff)
    # SESSION_FAILED needs no grace period; nothing is in flight
    failed = await store.list_orders_in_state(CheckoutState.SESSION_FAILED, now or utcnow())
    for order in orphaned + failed:
        if order.payment_status != PaymentStatus.PENDING or order.status == OrderStatus.CANCELLED:
            continue
        try:
            await _cancel(store, order)
        except Exception:
            log.exception("reconcile: failed to cancel order %s", order.id)
            stats["errors"] += 1
            continue
        log.info("reconcile: cancelled order %s (%s)", order.id, order.checkout_state.value)
        stats["cancelled"] += 1
        reconcile_counter.inc(labels={"action": "cancelled"})

    for order in await store.list_orders_in_state(CheckoutState.SESSION_CREATED, cutoff):
        if order.payment_status != PaymentStatus.PENDING or not order.stripe_checkout_session_id:
            continue
        try:
            action = await _sync_from_stripe(store, payments, order)
        except Exception:
            log.exception("reconcile: stripe lookup failed for order %s", order.id)
            stats["errors"] += 1
            continue
        if action:
            log.info("reconcile: order %s -> %s", order.id, action)
            stats[action] += 1
            reconcile_counter.inc(labels={"action": action})

    return stats
