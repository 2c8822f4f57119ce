"""Unit tests for the AppError taxonomy and error bodies."""

from src.nb_common.errors import (
    AppError,
    CheckoutProductInvalidError,
    CreditsNotAppliedError,
    InsufficientCreditsError,
    InvalidArgumentError,
    NoImageReturnedError,
    ProviderApiError,
    RateLimitError,
    StorageError,
    UnauthorizedError,
)
from src.nb_common.response import error_body


def test_all_errors_are_app_errors() -> None:
    for err in (
        UnauthorizedError(),
        InvalidArgumentError("x"),
        StorageError("x"),
        RateLimitError(),
    ):
        assert isinstance(err, AppError)


def test_status_codes() -> None:
    assert UnauthorizedError().http_status == 401
    assert InvalidArgumentError("bad").http_status == 400
    assert StorageError("down").http_status == 500
    assert RateLimitError().http_status == 429


def test_insufficient_credits_details() -> None:
    err = InsufficientCreditsError(required=2, available=0)
    assert err.code == 2002
    assert err.http_status == 400
    assert error_body(err.code, err.message, err.details) == {
        "error": "Insufficient credits",
        "code": 2002,
        "currentBalance": 0,
        "required": 2,
    }


def test_credits_not_applied_keeps_order_id() -> None:
    err = CreditsNotAppliedError("ORDER-1", "Insufficient credits")
    assert err.http_status == 500
    assert "contact support" in err.message
    assert err.details == {"orderId": "ORDER-1", "reason": "Insufficient credits"}


def test_provider_error_uses_upstream_status() -> None:
    assert ProviderApiError("PayPal", "nope", 422).http_status == 422
    assert ProviderApiError("PayPal", "nope").http_status == 500


def test_checkout_product_invalid_is_403() -> None:
    err = CheckoutProductInvalidError("prod_x", "pro", "yearly", {"message": "forbidden"})
    assert err.http_status == 403
    assert err.details["productId"] == "prod_x"


def test_no_image_debug_only_when_given() -> None:
    assert "debug" not in NoImageReturnedError("no image").details
    assert NoImageReturnedError("no image", {"messageKeys": []}).details["debug"] == {
        "messageKeys": []
    }


def test_error_body_drops_none_details() -> None:
    assert error_body(3004, "msg", {"orderId": "O", "reason": None}) == {
        "error": "msg",
        "code": 3004,
        "orderId": "O",
    }
