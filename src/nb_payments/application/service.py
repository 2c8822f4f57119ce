"""Payment flows: PayPal one-time packs and plan purchases, Creem checkout + webhooks.

Every successful provider capture is turned into exactly one ``add_credits``
call on the ledger. When the capture succeeded but the ledger rejected the
grant, the money has moved and the credits have not: that case is logged at
ERROR with both order ids and raised as ``CreditsNotAppliedError`` so it can
be reconciled by hand. Nothing here retries.
"""

import hashlib
import hmac
import json
import logging
import secrets
import string
import time
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import Settings
from src.nb_common.enums import CreemWebhookEvent, PayPalOrderStatus, TransactionType
from src.nb_common.errors import (
    CheckoutProductInvalidError,
    CreditsNotAppliedError,
    InvalidPaymentRequestError,
    PaymentNotCompletedError,
    PaymentNotConfiguredError,
    UnauthorizedError,
    WebhookSignatureError,
)
from src.nb_credits.application.service import CreditsLedgerService
from src.nb_payments.application.schemas import (
    CapturePackOrderRequest,
    CapturePackOrderResponse,
    CapturePlanOrderRequest,
    CapturePlanOrderResponse,
    CreateCheckoutRequest,
    CreateCheckoutResponse,
    CreatePackOrderRequest,
    CreatePackOrderResponse,
    CreatePlanOrderRequest,
    CreatePlanOrderResponse,
    CreemCheckout,
    CreemObject,
    CreemWebhookPayload,
    PayPalCapture,
    PayPalCaptureResult,
    PayPalOrder,
    PayPalPurchaseUnit,
)
from src.nb_payments.domain.catalog import (
    CREDITS_PACKS,
    SUBSCRIPTION_PLANS,
    creem_product_id,
    find_pack,
    find_plan,
    format_usd,
    parse_cycle,
)
from src.nb_payments.infrastructure.creem_client import CreemApiError, CreemClient
from src.nb_payments.infrastructure.paypal_client import PayPalApiError, PayPalClient

logger = logging.getLogger(__name__)

BRAND_NAME = "Nano Banana"
SIGNATURE_HEADER = "x-creem-signature"

_REQUEST_ID_ALPHABET = string.ascii_lowercase + string.digits


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _checkout_request_id() -> str:
    suffix = "".join(secrets.choice(_REQUEST_ID_ALPHABET) for _ in range(13))
    return f"checkout_{_now_ms()}_{suffix}"


def _validation_details(exc: ValidationError) -> list[Any]:
    return exc.errors(include_url=False, include_context=False)


def _parse_capture(data: dict[str, Any]) -> PayPalCaptureResult:
    try:
        return PayPalCaptureResult.model_validate(data)
    except ValidationError as exc:
        raise PayPalApiError(
            "Unexpected PayPal capture response", 502, _validation_details(exc)
        ) from exc


def _parse_order(data: dict[str, Any]) -> PayPalOrder:
    try:
        return PayPalOrder.model_validate(data)
    except ValidationError as exc:
        raise PayPalApiError(
            "Unexpected PayPal order response", 502, _validation_details(exc)
        ) from exc


def _completed_capture(result: PayPalCaptureResult) -> tuple[PayPalPurchaseUnit, PayPalCapture]:
    if result.status != PayPalOrderStatus.COMPLETED.value:
        raise PaymentNotCompletedError(result.status)
    unit = result.purchase_units[0] if result.purchase_units else None
    capture = unit.first_capture if unit is not None else None
    if unit is None or capture is None:
        raise InvalidPaymentRequestError("No capture data found")
    return unit, capture


def _custom_payload(raw: str | None) -> dict[str, Any]:
    """Decode the JSON ``custom_id`` written by plan orders; {} if it isn't one."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("custom_id is not JSON: %r", raw)
        return {}
    return value if isinstance(value, dict) else {}


def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of a hex HMAC-SHA256 of the raw body."""
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.strip().lower(), digest)


class PayPalPaymentService:
    """One-time credit packs and plan purchases paid through PayPal Orders v2."""

    def __init__(
        self,
        ledger: CreditsLedgerService,
        client: PayPalClient | None,
        settings: Settings,
    ) -> None:
        self._ledger = ledger
        self._client = client
        self._settings = settings

    def _require_client(self) -> PayPalClient:
        if self._client is None or not self._settings.paypal_configured:
            raise PaymentNotConfiguredError("PayPal")
        return self._client

    # ------------------------------------------------------------------
    # Credit packs
    # ------------------------------------------------------------------

    async def create_pack_order(self, req: CreatePackOrderRequest) -> CreatePackOrderResponse:
        client = self._require_client()
        if not req.pack_id:
            raise InvalidPaymentRequestError("Missing required parameter: packId")
        pack = find_pack(req.pack_id)
        if pack is None:
            valid = ", ".join(p.value for p in CREDITS_PACKS)
            raise InvalidPaymentRequestError(f"Invalid packId. Must be one of: {valid}")

        order = await client.create_order({
            "intent": "CAPTURE",
            "purchase_units": [{
                "reference_id": f"{pack.id.value}-{_now_ms()}",
                "description": pack.description,
                "custom_id": req.user_id or "",
                "amount": {"currency_code": "USD", "value": format_usd(pack.price)},
            }],
        })
        parsed = _parse_order(order)
        return CreatePackOrderResponse(
            order_id=parsed.id,
            pack_id=pack.id.value,
            credits=pack.credits,
            amount=float(pack.price),
        )

    async def capture_pack_order(
        self, db: AsyncSession, req: CapturePackOrderRequest
    ) -> CapturePackOrderResponse:
        client = self._require_client()
        if not req.order_id:
            raise InvalidPaymentRequestError("Missing required parameter: orderId")

        result = _parse_capture(await client.capture_order(req.order_id))
        unit, capture = _completed_capture(result)

        user_id = unit.custom_id or capture.custom_id or ""
        pack_id = (unit.reference_id or "").split("-", 1)[0]
        logger.info(
            "PayPal pack capture: order=%s user=%s pack=%s", result.id, user_id, pack_id
        )
        if not user_id:
            logger.error("No userId in captured order %s", result.id)
            raise InvalidPaymentRequestError("No user ID found in order")
        pack = find_pack(pack_id)
        if pack is None:
            raise InvalidPaymentRequestError(f"Invalid packId: {pack_id}")

        grant = await self._ledger.add_credits(
            db,
            user_id,
            pack.credits,
            TransactionType.PURCHASE,
            reference_id=result.id,
            description=f"Purchased {pack.name}",
            pack_id=pack.id.value,
            metadata={
                "paypalOrderId": result.id,
                "paypalCaptureId": capture.id,
                "amount": capture.amount.value,
                "currency": capture.amount.currency_code,
            },
        )
        if not grant.success:
            logger.error(
                "Captured PayPal order %s (capture %s) but credits were not applied "
                "for user %s: %s",
                result.id, capture.id, user_id, grant.error,
            )
            raise CreditsNotAppliedError(result.id, grant.error)

        return CapturePackOrderResponse(
            order_id=result.id,
            capture_id=capture.id,
            pack_id=pack.id.value,
            user_id=user_id,
            credits=pack.credits,
            new_balance=grant.balance or 0,
            amount=capture.amount.value,
            currency=capture.amount.currency_code,
            status=capture.status,
        )

    # ------------------------------------------------------------------
    # Plan purchases
    # ------------------------------------------------------------------

    async def create_plan_order(self, req: CreatePlanOrderRequest) -> CreatePlanOrderResponse:
        client = self._require_client()
        if not req.plan_id:
            raise InvalidPaymentRequestError("Missing required parameter: planId")
        if not req.user_id:
            raise UnauthorizedError("Missing required parameter: userId. Please login first.")
        plan = find_plan(req.plan_id)
        if plan is None:
            valid = ", ".join(p.value for p in SUBSCRIPTION_PLANS)
            raise InvalidPaymentRequestError(f"Invalid planId. Must be one of: {valid}")
        cycle = parse_cycle(req.billing_cycle)
        if cycle is None:
            raise InvalidPaymentRequestError('Invalid billingCycle. Must be "monthly" or "yearly"')

        term = plan.term(cycle)
        app_url = self._settings.APP_URL.rstrip("/")
        order = await client.create_order({
            "intent": "CAPTURE",
            "purchase_units": [{
                "reference_id": f"{plan.id.value}-{cycle.value}-{_now_ms()}",
                "description": f"{plan.name} Plan ({cycle.value}) - {term.credits} credits",
                "custom_id": json.dumps(
                    {"userId": req.user_id, "planId": plan.id.value, "billingCycle": cycle.value},
                    separators=(",", ":"),
                ),
                "amount": {"currency_code": "USD", "value": format_usd(term.price)},
            }],
            "application_context": {
                "return_url": f"{app_url}/subscription/return",
                "cancel_url": f"{app_url}/subscription-pricing",
                "brand_name": BRAND_NAME,
                "user_action": "PAY_NOW",
                "landing_page": "BILLING",
            },
        })
        parsed = _parse_order(order)
        approve = next((link for link in parsed.links if link.rel == "approve"), None)
        if approve is None:
            raise PayPalApiError("No approve link found in PayPal order response", 502, order)

        logger.info(
            "PayPal plan order created: order=%s user=%s plan=%s cycle=%s",
            parsed.id, req.user_id, plan.id.value, cycle.value,
        )
        return CreatePlanOrderResponse(
            order_id=parsed.id,
            approve_url=approve.href,
            plan_id=plan.id.value,
            billing_cycle=cycle.value,
            credits=term.credits,
            amount=float(term.price),
        )

    async def capture_plan_order(
        self, db: AsyncSession, req: CapturePlanOrderRequest
    ) -> CapturePlanOrderResponse:
        client = self._require_client()
        if not req.order_id:
            raise InvalidPaymentRequestError("Missing required parameter: orderId")
        if not req.plan_id or not req.billing_cycle:
            raise InvalidPaymentRequestError("Missing required parameters: planId or billingCycle")
        # Validate before capturing so a bad request never moves money.
        plan = find_plan(req.plan_id)
        if plan is None:
            raise InvalidPaymentRequestError(f"Invalid planId: {req.plan_id}")
        cycle = parse_cycle(req.billing_cycle)
        if cycle is None:
            raise InvalidPaymentRequestError(f"Invalid billingCycle: {req.billing_cycle}")

        result = _parse_capture(await client.capture_order(req.order_id))
        unit, capture = _completed_capture(result)

        custom = _custom_payload(capture.custom_id) or _custom_payload(unit.custom_id)
        user_id = custom.get("userId")
        if not isinstance(user_id, str) or not user_id:
            logger.error("No userId in captured plan order %s", result.id)
            raise InvalidPaymentRequestError("No user ID found in order")

        # The order itself records what was paid for; it wins over the request body.
        plan = find_plan(custom.get("planId")) or plan
        cycle = parse_cycle(custom.get("billingCycle")) or cycle
        term = plan.term(cycle)

        grant = await self._ledger.add_credits(
            db,
            user_id,
            term.credits,
            TransactionType.PURCHASE,
            reference_id=result.id,
            description=f"Subscribed to {plan.name} Plan ({cycle.value})",
            metadata={
                "type": "subscription",
                "planId": plan.id.value,
                "billingCycle": cycle.value,
                "paypalOrderId": result.id,
                "paypalCaptureId": capture.id,
                "amount": capture.amount.value,
                "currency": capture.amount.currency_code,
            },
        )
        if not grant.success:
            logger.error(
                "Captured PayPal plan order %s (capture %s) but credits were not applied "
                "for user %s: %s",
                result.id, capture.id, user_id, grant.error,
            )
            raise CreditsNotAppliedError(result.id, grant.error)

        return CapturePlanOrderResponse(
            order_id=result.id,
            capture_id=capture.id,
            plan_id=plan.id.value,
            billing_cycle=cycle.value,
            user_id=user_id,
            credits=term.credits,
            new_balance=grant.balance or 0,
            amount=capture.amount.value,
            currency=capture.amount.currency_code,
            status=capture.status,
        )


class CreemPaymentService:
    """Creem hosted checkout for plans, and the webhook that grants their credits."""

    def __init__(
        self,
        ledger: CreditsLedgerService,
        client: CreemClient | None,
        settings: Settings,
    ) -> None:
        self._ledger = ledger
        self._client = client
        self._settings = settings

    async def create_checkout(
        self, req: CreateCheckoutRequest, base_url: str
    ) -> CreateCheckoutResponse:
        """Open a checkout session; ``base_url`` is ``scheme://host`` of the caller."""
        if self._client is None or not self._settings.creem_configured:
            raise PaymentNotConfiguredError("Payment service")
        if not req.plan_id:
            raise InvalidPaymentRequestError("Missing required parameter: planId")
        cycle = parse_cycle(req.billing_period)
        if cycle is None:
            raise InvalidPaymentRequestError('Invalid billingPeriod. Must be "monthly" or "yearly"')
        product_id = creem_product_id(self._settings, req.plan_id, cycle)
        if not product_id:
            raise InvalidPaymentRequestError(
                f"No product configured for plan: {req.plan_id} ({cycle.value})"
            )

        body: dict[str, Any] = {
            "product_id": product_id,
            "request_id": _checkout_request_id(),
            "units": 1,
            "success_url": (
                f"{base_url.rstrip('/')}/pricing?success=true&session={{checkout_id}}"
            ),
            # planId/billingPeriod go last: the webhook grants credits from them.
            "metadata": {
                **(req.metadata or {}),
                "planId": req.plan_id,
                "billingPeriod": cycle.value,
            },
        }
        if req.user_email:
            body["customer"] = {"email": req.user_email}

        try:
            data = await self._client.create_checkout(body)
        except CreemApiError as exc:
            logger.error(
                "Creem checkout failed: product=%s plan=%s period=%s status=%s",
                product_id, req.plan_id, cycle.value, exc.status_code,
            )
            if exc.status_code == 403:
                raise CheckoutProductInvalidError(
                    product_id, req.plan_id, cycle.value, exc.details.get("details")
                ) from exc
            raise

        try:
            checkout = CreemCheckout.model_validate(data)
        except ValidationError as exc:
            raise CreemApiError(
                "Unexpected Creem checkout response", 502, _validation_details(exc)
            ) from exc
        logger.info("Creem checkout created: id=%s plan=%s", checkout.id, req.plan_id)
        return CreateCheckoutResponse(checkout_url=checkout.checkout_url, checkout_id=checkout.id)

    def verify_signature(self, raw_body: bytes, signature: str | None) -> None:
        """Raise ``WebhookSignatureError`` unless the body is signed (when a secret is set)."""
        secret = self._settings.CREEM_WEBHOOK_SECRET
        if not secret:
            return
        if not signature:
            logger.error("Creem webhook signature missing")
            raise WebhookSignatureError("Signature missing")
        if not verify_webhook_signature(raw_body, signature, secret):
            logger.error("Creem webhook signature verification failed")
            raise WebhookSignatureError("Invalid signature")

    async def handle_webhook(
        self, db: AsyncSession, raw_body: bytes, signature: str | None
    ) -> None:
        self.verify_signature(raw_body, signature)
        try:
            payload = CreemWebhookPayload.model_validate_json(raw_body)
        except ValidationError as exc:
            raise InvalidPaymentRequestError("Invalid JSON payload") from exc

        event = payload.event
        if event == CreemWebhookEvent.CHECKOUT_COMPLETED.value:
            await self._grant_plan_credits(db, payload.data.checkout, "checkoutId")
        elif event == CreemWebhookEvent.ORDER_PAID.value:
            await self._grant_plan_credits(db, payload.data.order, "orderId")
        elif event == CreemWebhookEvent.SUBSCRIPTION_CREATED.value:
            sub = payload.data.subscription
            logger.info("Creem subscription created: id=%s", sub.id if sub else None)
        elif event == CreemWebhookEvent.SUBSCRIPTION_CANCELLED.value:
            sub = payload.data.subscription
            logger.info("Creem subscription cancelled: id=%s", sub.id if sub else None)
        else:
            logger.info("Unhandled Creem webhook event: %s", event)

    async def _grant_plan_credits(
        self, db: AsyncSession, obj: CreemObject | None, id_key: str
    ) -> None:
        if obj is None:
            return
        metadata = obj.metadata or {}
        plan = find_plan(metadata.get("planId"))
        cycle = parse_cycle(metadata.get("billingPeriod"))
        if plan is None or cycle is None:
            logger.warning("No plan info in Creem %s metadata: %s", id_key, obj.id)
            return
        user_id = metadata.get("userId")
        if not isinstance(user_id, str) or not user_id:
            logger.warning("No userId in Creem %s metadata: %s", id_key, obj.id)
            return

        credits = plan.term(cycle).credits
        grant = await self._ledger.add_credits(
            db,
            user_id,
            credits,
            TransactionType.PURCHASE,
            reference_id=obj.id,
            description=f"{plan.id.value} plan ({cycle.value})",
            pack_id=f"{plan.id.value}_{cycle.value}",
            metadata={
                "planId": plan.id.value,
                "billingPeriod": cycle.value,
                id_key: obj.id,
            },
        )
        if grant.success:
            logger.info("Added %d credits to user %s for Creem %s", credits, user_id, obj.id)
        else:
            # Still acknowledged; the grant is reconciled by hand.
            logger.error(
                "Creem payment %s settled but credits were not applied for user %s: %s",
                obj.id, user_id, grant.error,
            )
