"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Credits ledger
  3xxx: Payments
  4xxx: Image generation
  9xxx: System
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details or {}
        super().__init__(message)


# --- 1xxx: Auth ---

class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(1001, message, 401)


# --- 2xxx: Credits ledger ---

class InvalidArgumentError(AppError):
    """Caller supplied a non-positive amount, unknown type or empty user id."""

    def __init__(self, detail: str) -> None:
        super().__init__(2001, detail, 400)


class InsufficientCreditsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2002,
            "Insufficient credits",
            400,
            {"currentBalance": available, "required": required},
        )


class StorageError(AppError):
    """Remote store call failed, returned a malformed row, or was rejected by a procedure."""

    def __init__(self, detail: str) -> None:
        super().__init__(2003, detail, 500)


# --- 3xxx: Payments ---

class PaymentNotConfiguredError(AppError):
    def __init__(self, provider: str) -> None:
        super().__init__(3001, f"{provider} is not configured", 503)


class InvalidPaymentRequestError(AppError):
    def __init__(self, detail: str, extra: dict[str, Any] | None = None) -> None:
        super().__init__(3002, detail, 400, extra)


class PaymentNotCompletedError(AppError):
    def __init__(self, status: str) -> None:
        super().__init__(3003, "Payment not completed", 400, {"status": status})


class CreditsNotAppliedError(AppError):
    """Provider captured the payment but the ledger rejected the credit grant.

    Needs manual reconciliation, so it is never folded into a generic error.
    """

    def __init__(self, order_id: str, reason: str | None = None) -> None:
        super().__init__(
            3004,
            "Payment successful but failed to add credits. Please contact support.",
            500,
            {"orderId": order_id, "reason": reason},
        )


class ProviderApiError(AppError):
    """Non-2xx response or transport failure from a payment provider."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(3005, message, status_code or 500, {"details": details})


class WebhookSignatureError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3006, detail, 401)


class CheckoutProductInvalidError(AppError):
    """Creem refused the product id (403): the env mapping points at a missing product."""

    def __init__(self, product_id: str, plan_id: str, billing_period: str, details: Any) -> None:
        super().__init__(
            3007,
            "Payment service misconfigured: invalid product id. Create the product in "
            "the Creem dashboard and update the CREEM_PRODUCT_* settings.",
            403,
            {
                "productId": product_id,
                "planId": plan_id,
                "billingPeriod": billing_period,
                "details": details,
            },
        )


# --- 4xxx: Image generation ---

class GenerationNotConfiguredError(AppError):
    def __init__(self) -> None:
        super().__init__(4001, "Missing OPENROUTER_API_KEY", 500)


class InvalidGenerationRequestError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4002, detail, 400)


class NoImageReturnedError(AppError):
    def __init__(self, details: str, debug: dict[str, Any] | None = None) -> None:
        extra: dict[str, Any] = {"details": details}
        if debug is not None:
            extra["debug"] = debug
        super().__init__(4003, "Model did not return an image URL", 502, extra)


class GenerationFailedError(AppError):
    def __init__(self, details: str, http_status: int = 500) -> None:
        super().__init__(4004, "Failed to generate image", http_status, {"details": details})


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
