# checkout_api/app/integrations/stripe/client.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Protocol, Sequence, runtime_checkable

import stripe
from fastapi.concurrency import run_in_threadpool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from checkout_api.app.core.errors import PaymentProviderUnavailable, WebhookVerificationError
from checkout_api.app.models.payment import CheckoutSession, LineItem, SessionStatus

log = logging.getLogger(__name__)


@runtime_checkable
class PaymentProvider(Protocol):
    async def create_checkout_session(
        self,
        *,
        line_items: Sequence[LineItem],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> CheckoutSession: ...

    async def retrieve_session(self, session_id: str) -> SessionStatus: ...

    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]: ...


class StripePaymentProvider:
    """Thin wrapper around Stripe Checkout Sessions + webhook verification.

    The SDK is synchronous; calls are pushed onto the threadpool so the event
    loop keeps serving other requests while Stripe answers.
    """

    def __init__(self, api_key: str, webhook_secret: str = "") -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _require_enabled(self) -> None:
        if not self.enabled:
            raise PaymentProviderUnavailable("STRIPE_SECRET_KEY is not configured")

    async def create_checkout_session(
        self,
        *,
        line_items: Sequence[LineItem],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> CheckoutSession:
        """
        One-time payment session. Not retried: a retry could create a second
        session for the same order.
        """
        self._require_enabled()
        params: Dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [li.to_stripe() for li in line_items],
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": dict(metadata),
        }
        session = await run_in_threadpool(
            stripe.checkout.Session.create, api_key=self.api_key, **params
        )
        log.info("stripe session %s created for order %s", session.id, metadata.get("orderId"))
        return CheckoutSession(id=session.id, url=session.url)

    @retry(
        retry=retry_if_exception_type(stripe.APIConnectionError),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def retrieve_session(self, session_id: str) -> SessionStatus:
        """Read-only, so transient network errors are retried."""
        self._require_enabled()
        session = await run_in_threadpool(
            stripe.checkout.Session.retrieve, session_id, api_key=self.api_key
        )
        return SessionStatus(
            id=session.id,
            status=getattr(session, "status", None),
            payment_status=getattr(session, "payment_status", None),
        )

    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Check the Stripe-Signature header and return the event as a plain dict.
        """
        if not self.webhook_secret:
            raise WebhookVerificationError("Webhook secret is not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            log.warning("rejected stripe webhook: %s", e)
            raise WebhookVerificationError() from e
        return json.loads(payload)
