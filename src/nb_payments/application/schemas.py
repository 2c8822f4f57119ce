"""Pydantic schemas for nb_payments: API bodies and provider payload shapes."""

from typing import Any

from pydantic import BaseModel, Field

from src.nb_common.response import CamelModel, SuccessBody
from src.nb_payments.domain.catalog import CreditsPack, PlanTerm, SubscriptionPlan

# ---------------------------------------------------------------------------
# Request schemas (all fields optional: missing values get 400s with
# field-specific messages from the service, not generic validation errors)
# ---------------------------------------------------------------------------


class CreatePackOrderRequest(CamelModel):
    pack_id: str | None = None
    user_id: str | None = None


class CapturePackOrderRequest(CamelModel):
    order_id: str | None = None


class CreatePlanOrderRequest(CamelModel):
    plan_id: str | None = None
    billing_cycle: str = "yearly"
    user_id: str | None = None


class CapturePlanOrderRequest(CamelModel):
    order_id: str | None = None
    plan_id: str | None = None
    billing_cycle: str | None = None


class CreateCheckoutRequest(CamelModel):
    plan_id: str | None = None
    billing_period: str = "yearly"
    user_email: str | None = None
    metadata: dict[str, str | int | float] | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CreatePackOrderResponse(SuccessBody):
    order_id: str
    pack_id: str
    credits: int
    amount: float


class CapturedPaymentFields(SuccessBody):
    order_id: str
    capture_id: str
    user_id: str
    credits: int
    new_balance: int
    amount: str
    currency: str
    status: str


class CapturePackOrderResponse(CapturedPaymentFields):
    pack_id: str


class CreatePlanOrderResponse(SuccessBody):
    order_id: str
    approve_url: str
    plan_id: str
    billing_cycle: str
    credits: int
    amount: float


class CapturePlanOrderResponse(CapturedPaymentFields):
    plan_id: str
    billing_cycle: str


class CreateCheckoutResponse(SuccessBody):
    checkout_url: str
    checkout_id: str


class WebhookAck(BaseModel):
    received: bool = True


class PackItem(CamelModel):
    id: str
    name: str
    description: str
    credits: int
    price: float
    images: int

    @classmethod
    def from_domain(cls, pack: CreditsPack) -> "PackItem":
        return cls(
            id=pack.id.value,
            name=pack.name,
            description=pack.description,
            credits=pack.credits,
            price=float(pack.price),
            images=pack.images,
        )


class PlanTermItem(CamelModel):
    price: float
    credits: int
    original_price: float
    discount: int

    @classmethod
    def from_domain(cls, term: PlanTerm) -> "PlanTermItem":
        return cls(
            price=float(term.price),
            credits=term.credits,
            original_price=float(term.original_price),
            discount=term.discount,
        )


class PlanItem(CamelModel):
    id: str
    name: str
    description: str
    monthly: PlanTermItem
    yearly: PlanTermItem
    images_per_month: int
    features: list[str]
    popular: bool
    best_value: bool

    @classmethod
    def from_domain(cls, plan: SubscriptionPlan) -> "PlanItem":
        return cls(
            id=plan.id.value,
            name=plan.name,
            description=plan.description,
            monthly=PlanTermItem.from_domain(plan.monthly),
            yearly=PlanTermItem.from_domain(plan.yearly),
            images_per_month=plan.images_per_month,
            features=list(plan.features),
            popular=plan.popular,
            best_value=plan.best_value,
        )


class PacksResponse(SuccessBody):
    packs: list[PackItem]


class PlansResponse(SuccessBody):
    plans: list[PlanItem]


# ---------------------------------------------------------------------------
# PayPal payload shapes (only the fields we read; everything else ignored)
# ---------------------------------------------------------------------------


class PayPalAmount(BaseModel):
    currency_code: str
    value: str


class PayPalCapture(BaseModel):
    id: str
    status: str
    amount: PayPalAmount
    custom_id: str | None = None


class PayPalPayments(BaseModel):
    captures: list[PayPalCapture] = Field(default_factory=list)


class PayPalPurchaseUnit(BaseModel):
    reference_id: str | None = None
    custom_id: str | None = None
    payments: PayPalPayments | None = None

    @property
    def first_capture(self) -> PayPalCapture | None:
        if self.payments is None or not self.payments.captures:
            return None
        return self.payments.captures[0]


class PayPalCaptureResult(BaseModel):
    id: str
    status: str
    purchase_units: list[PayPalPurchaseUnit] = Field(default_factory=list)


class PayPalLink(BaseModel):
    href: str
    rel: str
    method: str | None = None


class PayPalOrder(BaseModel):
    id: str
    status: str | None = None
    links: list[PayPalLink] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Creem payload shapes
# ---------------------------------------------------------------------------


class CreemCheckout(BaseModel):
    id: str
    checkout_url: str
    status: str | None = None


class CreemObject(BaseModel):
    id: str
    product: str | None = None
    status: str | None = None
    customer: str | None = None
    amount: int | None = None
    metadata: dict[str, Any] | None = None


class CreemWebhookData(BaseModel):
    checkout: CreemObject | None = None
    subscription: CreemObject | None = None
    order: CreemObject | None = None


class CreemWebhookPayload(BaseModel):
    event: str
    data: CreemWebhookData = Field(default_factory=CreemWebhookData)
