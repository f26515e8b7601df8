# checkout_api/worker.py
"""
Reconciliation worker: `python -m checkout_api.worker [--once]`.

Periodically repairs orders stuck between order creation and payment-session
linkage (see app/services/reconcile_service.py).
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Dict, Optional

from checkout_api.app.core.config import settings
from checkout_api.app.core.logging import setup_logging
from checkout_api.app.core.redis_conn import close_async_redis, get_async_redis
from checkout_api.app.integrations.stripe.client import StripePaymentProvider
from checkout_api.app.services.order_store import RedisOrderStore
from checkout_api.app.services.reconcile_service import reconcile_once

log = logging.getLogger("checkout_api.worker")


async def run_sweep() -> Dict[str, int]:
    store = RedisOrderStore(get_async_redis(), prefix=settings.redis_key_prefix)
    payments = StripePaymentProvider(settings.stripe_secret_key, settings.stripe_webhook_secret)
    return await reconcile_once(store, payments, grace_seconds=settings.reconcile_grace_seconds)


async def run_forever(interval_seconds: Optional[int] = None) -> None:
    interval = interval_seconds or settings.reconcile_interval_seconds
    log.info("reconciliation worker started (interval=%ss, grace=%ss)", interval, settings.reconcile_grace_seconds)
    while True:
        try:
            stats = await run_sweep()
            log.info("sweep done: %s", stats)
        except Exception:
            # Redis down or similar; next sweep tries again
            log.exception("sweep failed")
        await asyncio.sleep(interval)


async def _main(once: bool) -> None:
    try:
        if once:
            log.info("sweep done: %s", await run_sweep())
        else:
            await run_forever()
    finally:
        await close_async_redis()


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Repair orders stuck mid-checkout")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = parser.parse_args(argv)

    setup_logging()
    asyncio.run(_main(args.once))


if __name__ == "__main__":
    main()
