from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from checkout_api.app.core.errors import PaymentProviderUnavailable, WebhookVerificationError
from checkout_api.app.integrations.stripe.client import PaymentProvider, StripePaymentProvider
from checkout_api.app.models.payment import LineItem

SECRET = "whsec_unit"


def _signed(payload: bytes, secret: str = SECRET) -> str:
    ts = int(time.time())
    mac = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={mac}"


@pytest.fixture
def captured(monkeypatch):
    calls = []

    def _create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)
    return calls


def test_provider_satisfies_protocol():
    assert isinstance(StripePaymentProvider("sk_test"), PaymentProvider)


def test_create_session_sends_one_time_card_payment(captured):
    provider = StripePaymentProvider("sk_test")
    rows = [
        LineItem(name="Latte", unit_amount=500, quantity=2, description="Oat milk"),
        LineItem(name="Tip", unit_amount=100, quantity=1),
    ]

    session = asyncio.run(
        provider.create_checkout_session(
            line_items=rows,
            success_url="http://front/success?session_id={CHECKOUT_SESSION_ID}",
            cancel_url="http://front/cancel?order_id=o-1",
            metadata={"orderId": "o-1", "storeId": "store-1"},
        )
    )

    assert session.id == "cs_test_1"
    assert session.url.endswith("cs_test_1")
    call = captured[0]
    assert call["api_key"] == "sk_test"
    assert call["mode"] == "payment"
    assert call["payment_method_types"] == ["card"]
    assert call["metadata"] == {"orderId": "o-1", "storeId": "store-1"}
    assert call["line_items"] == [row.to_stripe() for row in rows]
    assert call["line_items"][0]["quantity"] == 2
    assert call["line_items"][0]["price_data"]["unit_amount"] == 500


def test_create_session_without_key_is_unavailable(captured):
    provider = StripePaymentProvider("")
    with pytest.raises(PaymentProviderUnavailable):
        asyncio.run(
            provider.create_checkout_session(
                line_items=[LineItem(name="Latte", unit_amount=500, quantity=1)],
                success_url="s",
                cancel_url="c",
                metadata={},
            )
        )
    assert captured == []


def test_signed_webhook_is_accepted():
    payload = json.dumps({"id": "evt_1", "object": "event", "type": "checkout.session.completed"}).encode()
    event = StripePaymentProvider("sk_test", SECRET).verify_webhook(payload, _signed(payload))
    assert event["type"] == "checkout.session.completed"


@pytest.mark.parametrize("signature", ["garbage", _signed(b"{}"), None])
def test_badly_signed_webhook_is_rejected(signature):
    payload = json.dumps({"id": "evt_1", "object": "event"}).encode()
    if signature is None:
        signature = _signed(payload, secret="whsec_other")
    with pytest.raises(WebhookVerificationError):
        StripePaymentProvider("sk_test", SECRET).verify_webhook(payload, signature)


def test_webhook_without_secret_is_rejected():
    payload = b'{"id": "evt_1"}'
    with pytest.raises(WebhookVerificationError):
        StripePaymentProvider("sk_test").verify_webhook(payload, _signed(payload))
