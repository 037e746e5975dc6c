"""
Billing error taxonomy.

Every error raised by the billing core derives from BillingError and carries the
HTTP status it maps to. The handler registered in app.main renders them as
{"error": message}.
"""
from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base class for all billing errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ValidationError(BillingError):
    """Missing or malformed required field."""

    status_code = 400


class AuthError(BillingError):
    """Missing or invalid caller token or webhook signature."""

    status_code = 401


class WebhookVerificationError(AuthError):
    """Webhook signature or payload rejected. Stripe expects a 400 here."""

    status_code = 400


class NotFoundError(BillingError):
    """Referenced session, tier or subscription does not exist."""

    status_code = 404


class ConflictError(BillingError):
    """Replay of a one-way transition that already happened."""

    status_code = 409


class ExpiredError(BillingError):
    """Time-boxed operation attempted after its window closed."""

    status_code = 410


class ExternalServiceError(BillingError):
    """Stripe call failed."""

    status_code = 500


class InternalError(BillingError):
    """Store write failed or the catalog is inconsistent."""

    status_code = 500
