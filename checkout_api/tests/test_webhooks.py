from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from checkout_api.main import app
from checkout_api.app.api.deps import get_order_store, get_payment_provider
from checkout_api.app.models.order import CheckoutState, Order, OrderStatus, PaymentStatus
from checkout_api.tests.fakes import FakePaymentProvider, InMemoryOrderStore

client = TestClient(app)


@pytest.fixture
def store():
    s = InMemoryOrderStore()
    s.orders["o-1"] = Order(
        id="o-1",
        store_id="store-1",
        order_number=1,
        customer_phone_e164="+15551234567",
        subtotal_cents=2000,
        total_cents=2000,
        stripe_checkout_session_id="cs_1",
        checkout_state=CheckoutState.SESSION_CREATED,
    )
    return s


@pytest.fixture
def payments():
    return FakePaymentProvider()


@pytest.fixture(autouse=True)
def _wire(store, payments):
    app.dependency_overrides[get_order_store] = lambda: store
    app.dependency_overrides[get_payment_provider] = lambda: payments
    yield
    app.dependency_overrides.clear()


def _post(event: dict, signature: str = "whsec_test"):
    return client.post(
        "/api/webhooks/stripe",
        content=json.dumps(event).encode(),
        headers={"Stripe-Signature": signature, "content-type": "application/json"},
    )


def _event(etype: str, **session):
    obj = {"id": "cs_1", "metadata": {"orderId": "o-1", "storeId": "store-1"}}
    obj.update(session)
    return {"id": "evt_1", "type": etype, "data": {"object": obj}}


def test_bad_signature_is_400(store):
    r = _post(_event("checkout.session.completed", payment_status="paid"), signature="forged")
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid webhook signature"}
    assert store.orders["o-1"].payment_status == PaymentStatus.PENDING


def test_completed_and_paid_marks_order_paid(store):
    r = _post(_event("checkout.session.completed", payment_status="paid"))
    assert r.status_code == 200
    assert r.json() == {"received": True, "orderId": "o-1"}
    assert store.orders["o-1"].payment_status == PaymentStatus.PAID


def test_completed_but_unpaid_waits_for_async_event(store):
    r = _post(_event("checkout.session.completed", payment_status="unpaid"))
    assert r.status_code == 200
    assert store.orders["o-1"].payment_status == PaymentStatus.PENDING

    _post(_event("checkout.session.async_payment_succeeded", payment_status="paid"))
    assert store.orders["o-1"].payment_status == PaymentStatus.PAID


def test_expired_session_marks_payment_failed(store):
    _post(_event("checkout.session.expired"))
    assert store.orders["o-1"].payment_status == PaymentStatus.FAILED


def test_paid_order_is_not_downgraded(store):
    _post(_event("checkout.session.completed", payment_status="paid"))
    _post(_event("checkout.session.expired"))
    assert store.orders["o-1"].payment_status == PaymentStatus.PAID


def test_payment_after_cancellation_reopens_order(store, caplog):
    store.orders["o-1"] = store.orders["o-1"].model_copy(
        update={
            "status": OrderStatus.CANCELLED,
            "payment_status": PaymentStatus.FAILED,
            "checkout_state": CheckoutState.SESSION_FAILED,
        }
    )
    with caplog.at_level("WARNING"):
        r = _post(_event("checkout.session.completed", payment_status="paid"))
    assert r.status_code == 200
    order = store.orders["o-1"]
    assert order.status == OrderStatus.PLACED
    assert order.checkout_state == CheckoutState.SESSION_CREATED
    assert order.payment_status == PaymentStatus.PAID
    assert "reopening" in caplog.text


def test_expiry_does_not_reopen_cancelled_order(store):
    store.orders["o-1"] = store.orders["o-1"].model_copy(
        update={"status": OrderStatus.CANCELLED, "payment_status": PaymentStatus.FAILED}
    )
    _post(_event("checkout.session.expired"))
    assert store.orders["o-1"].status == OrderStatus.CANCELLED


def test_lookup_falls_back_to_session_id(store):
    event = _event("checkout.session.completed", payment_status="paid", metadata={})
    r = _post(event)
    assert r.json()["orderId"] == "o-1"
    assert store.orders["o-1"].payment_status == PaymentStatus.PAID


def test_event_links_session_when_linkage_was_lost(store):
    store.orders["o-1"] = store.orders["o-1"].model_copy(
        update={"stripe_checkout_session_id": None, "checkout_state": CheckoutState.PENDING_PAYMENT_SESSION}
    )
    _post(_event("checkout.session.completed", payment_status="paid"))
    order = store.orders["o-1"]
    assert order.stripe_checkout_session_id == "cs_1"
    assert order.checkout_state == CheckoutState.SESSION_CREATED
    assert order.payment_status == PaymentStatus.PAID


def test_unrelated_events_are_acknowledged(store):
    r = _post({"id": "evt_2", "type": "customer.created", "data": {"object": {"id": "cus_1"}}})
    assert r.status_code == 200
    assert r.json() == {"received": True, "orderId": None}
