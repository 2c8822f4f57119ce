"""Unit tests for the PayPal and Creem payment flows with mocked provider clients."""

import json
from unittest.mock import AsyncMock

import pytest

from config.settings import Settings
from src.nb_common.errors import (
    CheckoutProductInvalidError,
    CreditsNotAppliedError,
    InvalidPaymentRequestError,
    PaymentNotCompletedError,
    PaymentNotConfiguredError,
    StorageError,
    UnauthorizedError,
)
from src.nb_credits.application.service import CreditsLedgerService
from src.nb_payments.application.schemas import (
    CapturePackOrderRequest,
    CapturePlanOrderRequest,
    CreateCheckoutRequest,
    CreatePackOrderRequest,
    CreatePlanOrderRequest,
)
from src.nb_payments.application.service import CreemPaymentService, PayPalPaymentService
from src.nb_payments.infrastructure.creem_client import CreemApiError
from src.nb_payments.infrastructure.paypal_client import PayPalApiError

USER_ID = "3f1d2c4b-0000-4000-8000-000000000001"


def _settings(**overrides) -> Settings:
    values = {
        "SUPABASE_JWT_SECRET": "x",
        "PAYPAL_CLIENT_ID": "cid",
        "PAYPAL_CLIENT_SECRET": "secret",
        "CREEM_API_KEY": "ck_test",
        "CREEM_WEBHOOK_SECRET": "",
        "APP_URL": "https://app.example.com/",
    }
    values.update(overrides)
    return Settings(**values)


def _capture_response(
    *,
    status: str = "COMPLETED",
    reference_id: str = "small-1700000000000",
    unit_custom_id: str | None = USER_ID,
    capture_custom_id: str | None = None,
) -> dict:
    capture = {
        "id": "CAPTURE-1",
        "status": "COMPLETED",
        "amount": {"currency_code": "USD", "value": "9.99"},
    }
    if capture_custom_id is not None:
        capture["custom_id"] = capture_custom_id
    unit = {"reference_id": reference_id, "payments": {"captures": [capture]}}
    if unit_custom_id is not None:
        unit["custom_id"] = unit_custom_id
    return {"id": "ORDER-1", "status": status, "purchase_units": [unit]}


@pytest.fixture
def ledger(memory_repo) -> CreditsLedgerService:
    return CreditsLedgerService(repo=memory_repo)


@pytest.fixture
def paypal_client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def paypal(ledger, paypal_client) -> PayPalPaymentService:
    return PayPalPaymentService(ledger, paypal_client, _settings())


class TestNotConfigured:
    async def test_no_client(self, ledger) -> None:
        service = PayPalPaymentService(ledger, None, _settings())
        with pytest.raises(PaymentNotConfiguredError) as exc_info:
            await service.create_pack_order(CreatePackOrderRequest(pack_id="small"))
        assert exc_info.value.http_status == 503

    async def test_missing_credentials(self, ledger, paypal_client) -> None:
        service = PayPalPaymentService(ledger, paypal_client, _settings(PAYPAL_CLIENT_SECRET=""))
        with pytest.raises(PaymentNotConfiguredError):
            await service.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))


class TestCreatePackOrder:
    async def test_builds_order(self, paypal, paypal_client) -> None:
        paypal_client.create_order.return_value = {"id": "ORDER-1", "status": "CREATED"}

        resp = await paypal.create_pack_order(
            CreatePackOrderRequest(pack_id="medium", user_id=USER_ID)
        )

        assert resp.model_dump(by_alias=True) == {
            "success": True, "orderId": "ORDER-1", "packId": "medium",
            "credits": 2000, "amount": 29.99,
        }
        order = paypal_client.create_order.await_args.args[0]
        unit = order["purchase_units"][0]
        assert order["intent"] == "CAPTURE"
        assert unit["custom_id"] == USER_ID
        assert unit["amount"] == {"currency_code": "USD", "value": "29.99"}
        prefix, stamp = unit["reference_id"].split("-", 1)
        assert prefix == "medium"
        assert stamp.isdigit()

    async def test_anonymous_order_has_empty_custom_id(self, paypal, paypal_client) -> None:
        paypal_client.create_order.return_value = {"id": "ORDER-2"}
        await paypal.create_pack_order(CreatePackOrderRequest(pack_id="small"))
        assert paypal_client.create_order.await_args.args[0]["purchase_units"][0]["custom_id"] == ""

    @pytest.mark.parametrize(("pack_id", "message"), [
        (None, "Missing required parameter: packId"),
        ("giant", "Invalid packId. Must be one of: small, medium, large, ultra"),
    ])
    async def test_bad_pack(self, paypal, paypal_client, pack_id, message) -> None:
        with pytest.raises(InvalidPaymentRequestError, match=message):
            await paypal.create_pack_order(CreatePackOrderRequest(pack_id=pack_id))
        paypal_client.create_order.assert_not_awaited()


class TestCapturePackOrder:
    async def test_credits_user(self, paypal, paypal_client, ledger, memory_repo) -> None:
        paypal_client.capture_order.return_value = _capture_response()
        db = AsyncMock()

        resp = await paypal.capture_pack_order(db, CapturePackOrderRequest(order_id="ORDER-1"))

        assert resp.new_balance == 500
        assert resp.credits == 500
        assert resp.pack_id == "small"
        assert resp.user_id == USER_ID
        assert resp.capture_id == "CAPTURE-1"
        assert resp.amount == "9.99"
        tx = memory_repo.transactions[-1]
        assert tx.reference_id == "ORDER-1"
        assert tx.type == "purchase"
        assert tx.description == "Purchased Starter Pack"
        assert tx.metadata == {
            "paypalOrderId": "ORDER-1", "paypalCaptureId": "CAPTURE-1",
            "amount": "9.99", "currency": "USD",
        }

    async def test_user_id_from_capture_when_unit_has_none(self, paypal, paypal_client) -> None:
        paypal_client.capture_order.return_value = _capture_response(
            unit_custom_id=None, capture_custom_id=USER_ID
        )
        resp = await paypal.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))
        assert resp.user_id == USER_ID

    async def test_missing_order_id(self, paypal, paypal_client) -> None:
        with pytest.raises(InvalidPaymentRequestError, match="orderId"):
            await paypal.capture_pack_order(AsyncMock(), CapturePackOrderRequest())
        paypal_client.capture_order.assert_not_awaited()

    async def test_not_completed(self, paypal, paypal_client, memory_repo) -> None:
        paypal_client.capture_order.return_value = _capture_response(status="PAYER_ACTION_REQUIRED")
        with pytest.raises(PaymentNotCompletedError) as exc_info:
            await paypal.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))
        assert exc_info.value.details == {"status": "PAYER_ACTION_REQUIRED"}
        assert memory_repo.transactions == []

    async def test_no_capture_data(self, paypal, paypal_client) -> None:
        paypal_client.capture_order.return_value = {
            "id": "ORDER-1", "status": "COMPLETED", "purchase_units": [{"reference_id": "small-1"}],
        }
        with pytest.raises(InvalidPaymentRequestError, match="No capture data"):
            await paypal.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))

    async def test_no_user(self, paypal, paypal_client) -> None:
        paypal_client.capture_order.return_value = _capture_response(unit_custom_id="")
        with pytest.raises(InvalidPaymentRequestError, match="No user ID"):
            await paypal.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))

    async def test_unknown_pack_prefix(self, paypal, paypal_client) -> None:
        paypal_client.capture_order.return_value = _capture_response(reference_id="giant-1")
        with pytest.raises(InvalidPaymentRequestError, match="Invalid packId: giant"):
            await paypal.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))

    async def test_malformed_capture_is_provider_error(self, paypal, paypal_client) -> None:
        paypal_client.capture_order.return_value = {"status": "COMPLETED"}
        with pytest.raises(PayPalApiError) as exc_info:
            await paypal.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))
        assert exc_info.value.http_status == 502

    async def test_ledger_failure_after_capture(self, paypal_client, memory_repo) -> None:
        memory_repo.call_add_credits = AsyncMock(side_effect=StorageError("connection reset"))
        service = PayPalPaymentService(
            CreditsLedgerService(repo=memory_repo), paypal_client, _settings()
        )
        paypal_client.capture_order.return_value = _capture_response()

        with pytest.raises(CreditsNotAppliedError) as exc_info:
            await service.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))

        assert exc_info.value.http_status == 500
        assert exc_info.value.details == {"orderId": "ORDER-1", "reason": "connection reset"}

    async def test_upstream_error_propagates(self, paypal, paypal_client) -> None:
        paypal_client.capture_order.side_effect = PayPalApiError("ORDER_NOT_APPROVED", 422, {})
        with pytest.raises(PayPalApiError):
            await paypal.capture_pack_order(AsyncMock(), CapturePackOrderRequest(order_id="O"))


class TestCreatePlanOrder:
    async def test_builds_order(self, paypal, paypal_client) -> None:
        paypal_client.create_order.return_value = {
            "id": "ORDER-9",
            "links": [
                {"rel": "self", "href": "https://paypal/self"},
                {"rel": "approve", "href": "https://paypal/approve"},
            ],
        }

        resp = await paypal.create_plan_order(
            CreatePlanOrderRequest(plan_id="pro", billing_cycle="monthly", user_id=USER_ID)
        )

        assert resp.approve_url == "https://paypal/approve"
        assert resp.credits == 800
        assert resp.amount == 19.5
        order = paypal_client.create_order.await_args.args[0]
        unit = order["purchase_units"][0]
        assert json.loads(unit["custom_id"]) == {
            "userId": USER_ID, "planId": "pro", "billingCycle": "monthly",
        }
        assert unit["amount"]["value"] == "19.50"
        assert unit["description"] == "Pro Plan (monthly) - 800 credits"
        ctx = order["application_context"]
        assert ctx["return_url"] == "https://app.example.com/subscription/return"
        assert ctx["cancel_url"] == "https://app.example.com/subscription-pricing"
        assert ctx["user_action"] == "PAY_NOW"

    async def test_defaults_to_yearly(self, paypal, paypal_client) -> None:
        paypal_client.create_order.return_value = {
            "id": "O", "links": [{"rel": "approve", "href": "https://a"}],
        }
        resp = await paypal.create_plan_order(CreatePlanOrderRequest(plan_id="basic", user_id=USER_ID))
        assert resp.billing_cycle == "yearly"
        assert resp.credits == 1800

    async def test_requires_user(self, paypal) -> None:
        with pytest.raises(UnauthorizedError):
            await paypal.create_plan_order(CreatePlanOrderRequest(plan_id="pro"))

    async def test_bad_cycle(self, paypal) -> None:
        with pytest.raises(InvalidPaymentRequestError, match="billingCycle"):
            await paypal.create_plan_order(
                CreatePlanOrderRequest(plan_id="pro", billing_cycle="weekly", user_id=USER_ID)
            )

    async def test_no_approve_link(self, paypal, paypal_client) -> None:
        paypal_client.create_order.return_value = {"id": "O", "links": []}
        with pytest.raises(PayPalApiError, match="approve link"):
            await paypal.create_plan_order(CreatePlanOrderRequest(plan_id="pro", user_id=USER_ID))


class TestCapturePlanOrder:
    def _plan_capture(self, plan_id: str = "max", cycle: str = "yearly") -> dict:
        custom = json.dumps({"userId": USER_ID, "planId": plan_id, "billingCycle": cycle})
        return _capture_response(
            reference_id=f"{plan_id}-{cycle}-1", unit_custom_id=None, capture_custom_id=custom
        )

    async def test_credits_plan(self, paypal, paypal_client, memory_repo) -> None:
        paypal_client.capture_order.return_value = self._plan_capture("max", "yearly")

        resp = await paypal.capture_plan_order(
            AsyncMock(),
            CapturePlanOrderRequest(order_id="ORDER-1", plan_id="max", billing_cycle="yearly"),
        )

        assert resp.credits == 55200
        assert resp.new_balance == 55200
        tx = memory_repo.transactions[-1]
        assert tx.description == "Subscribed to Max Plan (yearly)"
        assert tx.metadata["type"] == "subscription"
        assert tx.metadata["billingCycle"] == "yearly"

    async def test_order_custom_id_wins_over_body(self, paypal, paypal_client) -> None:
        paypal_client.capture_order.return_value = self._plan_capture("basic", "monthly")
        resp = await paypal.capture_plan_order(
            AsyncMock(),
            CapturePlanOrderRequest(order_id="ORDER-1", plan_id="max", billing_cycle="yearly"),
        )
        assert (resp.plan_id, resp.billing_cycle, resp.credits) == ("basic", "monthly", 150)

    async def test_validates_before_capturing(self, paypal, paypal_client) -> None:
        with pytest.raises(InvalidPaymentRequestError, match="Invalid planId"):
            await paypal.capture_plan_order(
                AsyncMock(),
                CapturePlanOrderRequest(order_id="O", plan_id="gold", billing_cycle="yearly"),
            )
        paypal_client.capture_order.assert_not_awaited()

    async def test_missing_plan_params(self, paypal) -> None:
        with pytest.raises(InvalidPaymentRequestError, match="planId or billingCycle"):
            await paypal.capture_plan_order(AsyncMock(), CapturePlanOrderRequest(order_id="O"))

    async def test_custom_id_not_json(self, paypal, paypal_client) -> None:
        paypal_client.capture_order.return_value = _capture_response(
            unit_custom_id=None, capture_custom_id="not-json"
        )
        with pytest.raises(InvalidPaymentRequestError, match="No user ID"):
            await paypal.capture_plan_order(
                AsyncMock(),
                CapturePlanOrderRequest(order_id="O", plan_id="pro", billing_cycle="yearly"),
            )


class TestCreateCheckout:
    @pytest.fixture
    def creem_client(self) -> AsyncMock:
        client = AsyncMock()
        client.create_checkout.return_value = {"id": "ch_1", "checkout_url": "https://creem/ch_1"}
        return client

    def _service(self, ledger, client, **settings) -> CreemPaymentService:
        return CreemPaymentService(
            ledger, client, _settings(CREEM_PRODUCT_PRO_YEARLY="prod_pro_y", **settings)
        )

    async def test_creates_session(self, ledger, creem_client) -> None:
        resp = await self._service(ledger, creem_client).create_checkout(
            CreateCheckoutRequest(
                plan_id="pro", user_email="a@example.com", metadata={"userId": USER_ID}
            ),
            "https://shop.example.com",
        )

        assert resp.checkout_url == "https://creem/ch_1"
        assert resp.checkout_id == "ch_1"
        body = creem_client.create_checkout.await_args.args[0]
        assert body["product_id"] == "prod_pro_y"
        assert body["units"] == 1
        assert body["customer"] == {"email": "a@example.com"}
        assert body["success_url"] == (
            "https://shop.example.com/pricing?success=true&session={checkout_id}"
        )
        assert body["metadata"] == {"planId": "pro", "billingPeriod": "yearly", "userId": USER_ID}
        assert body["request_id"].startswith("checkout_")

    async def test_caller_metadata_cannot_change_granted_plan(
        self, ledger, memory_repo, creem_client
    ) -> None:
        service = self._service(ledger, creem_client)
        await service.create_checkout(
            CreateCheckoutRequest(
                plan_id="pro",
                billing_period="yearly",
                metadata={"planId": "max", "billingPeriod": "monthly", "userId": USER_ID},
            ),
            "http://x",
        )
        metadata = creem_client.create_checkout.await_args.args[0]["metadata"]
        assert metadata == {"planId": "pro", "billingPeriod": "yearly", "userId": USER_ID}

        # Creem echoes the checkout metadata back in checkout.completed
        event = {
            "event": "checkout.completed",
            "data": {"checkout": {"id": "ch_1", "metadata": metadata}},
        }
        await service.handle_webhook(AsyncMock(), json.dumps(event).encode(), None)
        assert memory_repo.balances[USER_ID].balance == 9600
        assert memory_repo.transactions[-1].pack_id == "pro_yearly"

    async def test_no_customer_without_email(self, ledger, creem_client) -> None:
        await self._service(ledger, creem_client).create_checkout(
            CreateCheckoutRequest(plan_id="pro"), "http://x"
        )
        assert "customer" not in creem_client.create_checkout.await_args.args[0]

    async def test_not_configured(self, ledger, creem_client) -> None:
        with pytest.raises(PaymentNotConfiguredError):
            await self._service(ledger, creem_client, CREEM_API_KEY="").create_checkout(
                CreateCheckoutRequest(plan_id="pro"), "http://x"
            )

    async def test_unmapped_product(self, ledger, creem_client) -> None:
        with pytest.raises(InvalidPaymentRequestError, match="No product configured"):
            await self._service(ledger, creem_client, CREEM_PRODUCT_PRO_MONTHLY="").create_checkout(
                CreateCheckoutRequest(plan_id="pro", billing_period="monthly"), "http://x"
            )

    async def test_bad_period(self, ledger, creem_client) -> None:
        with pytest.raises(InvalidPaymentRequestError, match="billingPeriod"):
            await self._service(ledger, creem_client).create_checkout(
                CreateCheckoutRequest(plan_id="pro", billing_period="daily"), "http://x"
            )

    async def test_forbidden_product_hint(self, ledger, creem_client) -> None:
        creem_client.create_checkout.side_effect = CreemApiError("Forbidden", 403, {"m": 1})
        with pytest.raises(CheckoutProductInvalidError) as exc_info:
            await self._service(ledger, creem_client).create_checkout(
                CreateCheckoutRequest(plan_id="pro"), "http://x"
            )
        assert exc_info.value.details["productId"] == "prod_pro_y"
        assert exc_info.value.details["details"] == {"m": 1}

    async def test_other_provider_errors_propagate(self, ledger, creem_client) -> None:
        creem_client.create_checkout.side_effect = CreemApiError("Bad request", 400, {})
        with pytest.raises(CreemApiError):
            await self._service(ledger, creem_client).create_checkout(
                CreateCheckoutRequest(plan_id="pro"), "http://x"
            )
