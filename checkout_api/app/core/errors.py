# checkout_api/app/core/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class CheckoutError(Exception):
    """Base for errors that map onto a JSON body `{"error": ..., "details"?: ...}`.

    `code` is a short machine label, used for metrics and logs only; callers
    see `error` (and `details` when present).
    """

    status_code: int = 500
    code: str = "error"
    default_message: str = "Internal server error"

    def __init__(self, error: Optional[str] = None, *, details: Optional[List[Dict[str, Any]]] = None):
        self.error = error or self.default_message
        self.details = details
        super().__init__(self.error)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class RequestValidationFailed(CheckoutError):
    status_code = 400
    code = "invalid_request"
    default_message = "Invalid request data"


class NotFoundError(CheckoutError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class AvailabilityError(CheckoutError):
    """Cart references items that are unknown, unavailable, or from another store."""

    status_code = 400
    code = "unavailable"
    default_message = "Some items are not available"


class WebhookVerificationError(CheckoutError):
    status_code = 400
    code = "bad_signature"
    default_message = "Invalid webhook signature"


class UnhandledError(CheckoutError):
    status_code = 500
    code = "unhandled"
    default_message = "Failed to create checkout session"


class PaymentProviderUnavailable(RuntimeError):
    """Raised when the Stripe client is not configured."""
    pass
