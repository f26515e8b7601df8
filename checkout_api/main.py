# checkout_api/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from checkout_api.app.core.logging import setup_logging
from checkout_api.app.core.config import settings
from checkout_api.app.core.errors import CheckoutError, RequestValidationFailed
from checkout_api.app.core.redis_conn import close_async_redis

from checkout_api.app.api.routes_checkout import router as checkout_router
from checkout_api.app.api.routes_webhooks import router as webhooks_router
from checkout_api.app.api.routes_orders import router as orders_router
from checkout_api.app.api.routes_health import router as health_router
from checkout_api.app.api.routes_metrics import router as metrics_router

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_async_redis()


def create_app() -> FastAPI:
    # Initialize logging early so all imports use correct handlers/levels
    setup_logging()

    app = FastAPI(
        title=settings.service_name or "Checkout API",
        version=settings.version or "0.1.0",
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --- Error bodies are always {"error": ..., "details"?: ...} ---
    @app.exception_handler(RequestValidationError)
    async def _validation_to_400(request: Request, exc: RequestValidationError):
        err = RequestValidationFailed(details=jsonable_encoder(exc.errors()))
        return JSONResponse(status_code=err.status_code, content=err.to_body())

    @app.exception_handler(CheckoutError)
    async def _checkout_error(request: Request, exc: CheckoutError):
        if exc.status_code >= 500:
            log.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.error)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(Exception)
    async def _unhandled_exc_to_json(request: Request, exc: Exception):
        # Full traceback stays in the server log; the client gets nothing specific.
        log.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins or ["*"],
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods or ["*"],
        allow_headers=settings.cors_allow_headers or ["*"],
    )

    app.include_router(checkout_router)
    app.include_router(webhooks_router)
    app.include_router(orders_router)
    app.include_router(health_router)
    app.include_router(metrics_router)

    @app.get("/")
    def root():
        return {
            "service": settings.service_name,
            "version": settings.version,
            "environment": settings.environment,
            "docs": "/docs",
            "openapi": "/openapi.json",
            "tips": {
                "checkout": "POST /api/checkout-session",
                "order": "GET /api/orders/<id>",
                "stripe_webhook": "POST /api/webhooks/stripe",
                "health": "/api/health",
                "metrics": "/api/metrics",
            },
        }

    return app


app = create_app()
