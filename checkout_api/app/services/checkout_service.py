# checkout_api/app/services/checkout_service.py
from __future__ import annotations

import logging
from typing import List

from checkout_api.app.core.errors import AvailabilityError, NotFoundError
from checkout_api.app.integrations.stripe.client import PaymentProvider
from checkout_api.app.models.checkout import CheckoutRequest, CheckoutSessionOut
from checkout_api.app.models.order import CheckoutState, Order, OrderStatus, PaymentStatus
from checkout_api.app.models.payment import CheckoutSession, LineItem
from checkout_api.app.services.order_store import OrderStore
from checkout_api.app.services.pricing import build_line_items, build_order_items, compute_totals

log = logging.getLogger(__name__)

# Stripe substitutes the literal placeholder on redirect.
SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


class CheckoutService:
    """
    Cart -> priced order -> hosted payment session.

    The order is written first (PLACED / PENDING, checkoutState
    PENDING_PAYMENT_SESSION), then Stripe is called, then the session id is
    linked back. Every hop leaves the order in an observable checkoutState,
    which is what the reconciliation worker keys on.
    """

    def __init__(
        self,
        store: OrderStore,
        payments: PaymentProvider,
        *,
        frontend_url: str,
        currency: str = "usd",
    ) -> None:
        self.store = store
        self.payments = payments
        self.frontend_url = frontend_url.rstrip("/")
        self.currency = currency

    def success_url(self) -> str:
        return f"{self.frontend_url}/success?session_id={SESSION_ID_PLACEHOLDER}"

    def cancel_url(self, order_id: str) -> str:
        return f"{self.frontend_url}/cancel?order_id={order_id}"

    async def create_session(self, req: CheckoutRequest) -> CheckoutSessionOut:
        store = await self.store.get_store(req.store_id)
        if store is None:
            raise NotFoundError("Store not found")

        ids = [line.menu_item_id for line in req.cart_items]
        menu = await self.store.find_available_menu_items(req.store_id, ids)
        if len(menu) != len(req.cart_items):
            log.info(
                "checkout rejected for store %s: %d of %d cart lines resolved",
                req.store_id, len(menu), len(req.cart_items),
            )
            raise AvailabilityError()

        items = build_order_items(menu, req.cart_items)
        totals = compute_totals(menu, req.cart_items, req.tip_cents)
        order_number = await self.store.next_order_number(req.store_id)

        order = await self.store.create_order(
            Order(
                store_id=req.store_id,
                order_number=order_number,
                customer_phone_e164=req.phone_e164,
                consent_call=req.consent_call,
                consent_sms=req.consent_sms,
                status=OrderStatus.PLACED,
                payment_status=PaymentStatus.PENDING,
                checkout_state=CheckoutState.PENDING_PAYMENT_SESSION,
                subtotal_cents=totals.subtotal_cents,
                tax_cents=totals.tax_cents,
                tip_cents=totals.tip_cents,
                total_cents=totals.total_cents,
                currency=self.currency,
                items=items,
            )
        )
        log.info(
            "order %s (#%d) placed for store %s, total=%d %s",
            order.id, order.order_number, order.store_id, order.total_cents, order.currency,
        )

        line_items = build_line_items(order.items, menu, req.tip_cents, currency=self.currency)
        session = await self._open_session(order, line_items)

        await self.store.update_order(
            order.id,
            stripe_checkout_session_id=session.id,
            checkout_state=CheckoutState.SESSION_CREATED,
        )
        return CheckoutSessionOut(session_id=session.id, session_url=session.url, order_id=order.id)

    async def _open_session(self, order: Order, line_items: List[LineItem]) -> CheckoutSession:
        try:
            return await self.payments.create_checkout_session(
                line_items=line_items,
                success_url=self.success_url(),
                cancel_url=self.cancel_url(order.id),
                metadata={"orderId": order.id, "storeId": order.store_id},
            )
        except Exception:
            # The order stays PLACED/PENDING; flag it for reconciliation.
            try:
                await self.store.update_order(order.id, checkout_state=CheckoutState.SESSION_FAILED)
            except Exception:
                log.exception("could not flag order %s as SESSION_FAILED", order.id)
            raise
