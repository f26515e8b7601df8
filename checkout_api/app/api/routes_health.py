from __future__ import annotations

from fastapi import APIRouter

from checkout_api.app.core.config import settings
from checkout_api.app.core.redis_conn import ping_async

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    # Never calls Stripe; only reports whether keys are present.
    redis_ok = await ping_async()
    return {
        "service": settings.service_name,
        "version": settings.version,
        "status": "ok" if redis_ok else "degraded",
        "env": {
            "environment": settings.environment,
            "stripe_key_present": settings.stripe_enabled,
            "webhook_secret_present": bool(settings.stripe_webhook_secret),
            "currency": settings.currency,
        },
        "probes": {
            "redis": "ok" if redis_ok else "fail",
        },
    }
