# checkout_api/app/api/deps.py
from __future__ import annotations

from fastapi import Depends

from checkout_api.app.core.config import settings
from checkout_api.app.core.redis_conn import get_async_redis
from checkout_api.app.integrations.stripe.client import PaymentProvider, StripePaymentProvider
from checkout_api.app.services.checkout_service import CheckoutService
from checkout_api.app.services.order_store import OrderStore, RedisOrderStore


def get_order_store() -> OrderStore:
    return RedisOrderStore(get_async_redis(), prefix=settings.redis_key_prefix)


def get_payment_provider() -> PaymentProvider:
    return StripePaymentProvider(settings.stripe_secret_key, settings.stripe_webhook_secret)


def get_checkout_service(
    store: OrderStore = Depends(get_order_store),
    payments: PaymentProvider = Depends(get_payment_provider),
) -> CheckoutService:
    return CheckoutService(
        store,
        payments,
        frontend_url=settings.frontend_url,
        currency=settings.currency,
    )
