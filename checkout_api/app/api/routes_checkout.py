# checkout_api/app/api/routes_checkout.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from checkout_api.app.api.deps import get_checkout_service
from checkout_api.app.core.errors import CheckoutError, UnhandledError
from checkout_api.app.core.metrics import checkout_counter, checkout_duration
from checkout_api.app.models.checkout import CheckoutRequest, CheckoutSessionOut
from checkout_api.app.services.checkout_service import CheckoutService

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["checkout"])


@router.post(
    "/checkout-session",
    response_model=CheckoutSessionOut,
    summary="Price a cart, place the order and open a Stripe Checkout session",
)
async def create_checkout_session(
    body: CheckoutRequest,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutSessionOut:
    """
    Prices come from the store's menu, never from the body.

    Errors: 400 invalid body / unavailable items, 404 unknown store,
    500 anything else (detail is only logged).
    """
    stop = checkout_duration.timer()
    try:
        out = await service.create_session(body)
    except CheckoutError as e:
        checkout_counter.inc(labels={"result": e.code})
        raise
    except Exception as e:
        log.exception("Checkout error for store %s", body.store_id)
        checkout_counter.inc(labels={"result": UnhandledError.code})
        raise UnhandledError() from e
    finally:
        stop()

    checkout_counter.inc(labels={"result": "ok"})
    return out
