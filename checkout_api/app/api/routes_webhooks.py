from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from checkout_api.app.api.deps import get_order_store, get_payment_provider
from checkout_api.app.core.metrics import webhook_counter
from checkout_api.app.integrations.stripe.client import PaymentProvider
from checkout_api.app.services.order_store import OrderStore
from checkout_api.app.services.payment_events import apply_checkout_event

router = APIRouter(prefix="/api", tags=["webhooks"])


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    store: OrderStore = Depends(get_order_store),
    payments: PaymentProvider = Depends(get_payment_provider),
):
    # signature is computed over the raw bytes; do not parse first
    payload = await request.body()
    event = payments.verify_webhook(payload, stripe_signature or "")
    webhook_counter.inc(labels={"type": event.get("type", "unknown")})

    order = await apply_checkout_event(store, event)
    return {
        "received": True,
        "orderId": order.id if order else None,
    }
