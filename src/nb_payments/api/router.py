"""nb_payments REST API — pricing catalog, PayPal orders, Creem checkout and webhook."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.nb_common.database import get_db_session
from src.nb_payments.api.dependencies import get_creem_service, get_paypal_service
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
    PackItem,
    PacksResponse,
    PlanItem,
    PlansResponse,
    WebhookAck,
)
from src.nb_payments.application.service import (
    SIGNATURE_HEADER,
    CreemPaymentService,
    PayPalPaymentService,
)
from src.nb_payments.domain.catalog import CREDITS_PACKS, SUBSCRIPTION_PLANS

router = APIRouter(tags=["payments"])

PayPalDep = Annotated[PayPalPaymentService, Depends(get_paypal_service)]
CreemDep = Annotated[CreemPaymentService, Depends(get_creem_service)]
DbDep = Annotated[AsyncSession, Depends(get_db_session)]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@router.get("/pricing/packs")
async def list_packs() -> PacksResponse:
    return PacksResponse(packs=[PackItem.from_domain(p) for p in CREDITS_PACKS.values()])


@router.get("/pricing/plans")
async def list_plans() -> PlansResponse:
    return PlansResponse(plans=[PlanItem.from_domain(p) for p in SUBSCRIPTION_PLANS.values()])


# ---------------------------------------------------------------------------
# PayPal: one-time credit packs
# ---------------------------------------------------------------------------


@router.post("/paypal/create-order")
async def create_pack_order(
    body: CreatePackOrderRequest, paypal: PayPalDep
) -> CreatePackOrderResponse:
    return await paypal.create_pack_order(body)


@router.post("/paypal/capture-order")
async def capture_pack_order(
    body: CapturePackOrderRequest, db: DbDep, paypal: PayPalDep
) -> CapturePackOrderResponse:
    return await paypal.capture_pack_order(db, body)


# ---------------------------------------------------------------------------
# PayPal: plan purchases
# ---------------------------------------------------------------------------


@router.post("/subscription/create-order")
async def create_plan_order(
    body: CreatePlanOrderRequest, paypal: PayPalDep
) -> CreatePlanOrderResponse:
    return await paypal.create_plan_order(body)


@router.post("/subscription/capture-order")
async def capture_plan_order(
    body: CapturePlanOrderRequest, db: DbDep, paypal: PayPalDep
) -> CapturePlanOrderResponse:
    return await paypal.capture_plan_order(db, body)


# ---------------------------------------------------------------------------
# Creem
# ---------------------------------------------------------------------------


@router.post("/checkout")
async def create_checkout(
    body: CreateCheckoutRequest, request: Request, creem: CreemDep
) -> CreateCheckoutResponse:
    base_url = f"{request.url.scheme}://{request.url.netloc}"
    return await creem.create_checkout(body, base_url)


@router.post("/webhooks/creem")
async def creem_webhook(request: Request, db: DbDep, creem: CreemDep) -> WebhookAck:
    """Raw body is read before parsing: the signature covers the exact bytes."""
    raw_body = await request.body()
    await creem.handle_webhook(db, raw_body, request.headers.get(SIGNATURE_HEADER))
    return WebhookAck()
