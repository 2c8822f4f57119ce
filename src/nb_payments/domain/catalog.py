"""Product catalog: one-time credit packs and recurring plans.

Prices are USD. Every generated image costs CREDITS_PER_IMAGE credits, which
is where the "images" figures on the pricing pages come from.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from config.settings import Settings
from src.nb_common.enums import BillingCycle, CreditsPackId, PlanId

CREDITS_PER_IMAGE = 2


@dataclass(frozen=True)
class CreditsPack:
    id: CreditsPackId
    name: str
    credits: int
    price: Decimal
    description: str

    @property
    def images(self) -> int:
        return self.credits // CREDITS_PER_IMAGE


@dataclass(frozen=True)
class PlanTerm:
    price: Decimal
    credits: int
    original_price: Decimal
    discount: int = 0   # percent off original_price


@dataclass(frozen=True)
class SubscriptionPlan:
    id: PlanId
    name: str
    description: str
    monthly: PlanTerm
    yearly: PlanTerm
    images_per_month: int
    features: tuple[str, ...] = field(default_factory=tuple)
    popular: bool = False
    best_value: bool = False

    def term(self, cycle: BillingCycle) -> PlanTerm:
        return self.monthly if cycle == BillingCycle.MONTHLY else self.yearly


CREDITS_PACKS: dict[CreditsPackId, CreditsPack] = {
    CreditsPackId.SMALL: CreditsPack(
        CreditsPackId.SMALL, "Starter Pack", 500, Decimal("9.99"),
        "500 credits - about 250 images",
    ),
    CreditsPackId.MEDIUM: CreditsPack(
        CreditsPackId.MEDIUM, "Standard Pack", 2000, Decimal("29.99"),
        "2000 credits - about 1000 images",
    ),
    CreditsPackId.LARGE: CreditsPack(
        CreditsPackId.LARGE, "Pro Pack", 10000, Decimal("99.99"),
        "10000 credits - about 5000 images",
    ),
    CreditsPackId.ULTRA: CreditsPack(
        CreditsPackId.ULTRA, "Ultimate Pack", 50000, Decimal("399.99"),
        "50000 credits - about 25000 images",
    ),
}

SUBSCRIPTION_PLANS: dict[PlanId, SubscriptionPlan] = {
    PlanId.BASIC: SubscriptionPlan(
        id=PlanId.BASIC,
        name="Basic",
        description="Perfect for individuals and light users",
        monthly=PlanTerm(Decimal("12"), 150, Decimal("12")),
        yearly=PlanTerm(Decimal("144"), 1800, Decimal("180"), discount=20),
        images_per_month=75,
        features=(
            "75 high-quality images/month",
            "All style templates included",
            "Standard generation speed",
            "Basic customer support",
            "JPG/PNG format downloads",
            "Commercial Use License",
        ),
    ),
    PlanId.PRO: SubscriptionPlan(
        id=PlanId.PRO,
        name="Pro",
        description="For professional creators and teams",
        monthly=PlanTerm(Decimal("19.5"), 800, Decimal("19.5")),
        yearly=PlanTerm(Decimal("234"), 9600, Decimal("468"), discount=50),
        images_per_month=400,
        features=(
            "400 high-quality images/month",
            "Support Seedream-4 Model",
            "Support Nanobanana-Pro Model",
            "All style templates included",
            "Priority generation queue",
            "Priority customer support",
            "JPG/PNG/WebP format downloads",
            "Batch generation feature",
            "Commercial Use License",
        ),
        popular=True,
    ),
    PlanId.MAX: SubscriptionPlan(
        id=PlanId.MAX,
        name="Max",
        description="Designed for large enterprises and professional studios",
        monthly=PlanTerm(Decimal("80"), 4600, Decimal("80")),
        yearly=PlanTerm(Decimal("960"), 55200, Decimal("1920"), discount=50),
        images_per_month=2300,
        features=(
            "2300 high-quality images/month",
            "Support Seedream-4 Model",
            "Support Nanobanana-Pro Model",
            "All style templates included",
            "Fastest generation speed",
            "Dedicated account manager",
            "All format downloads",
            "Batch generation feature",
            "Commercial Use License",
        ),
        best_value=True,
    ),
}


def find_pack(pack_id: str | None) -> CreditsPack | None:
    try:
        return CREDITS_PACKS[CreditsPackId(pack_id)]
    except ValueError:
        return None


def find_plan(plan_id: str | None) -> SubscriptionPlan | None:
    try:
        return SUBSCRIPTION_PLANS[PlanId(plan_id)]
    except ValueError:
        return None


def parse_cycle(raw: str | None) -> BillingCycle | None:
    try:
        return BillingCycle(raw)
    except ValueError:
        return None


def creem_product_id(settings: Settings, plan_id: str, cycle: BillingCycle) -> str:
    """Creem product configured for a plan/cycle pair, or "" when none is."""
    attr = f"CREEM_PRODUCT_{plan_id.upper()}_{cycle.value.upper()}"
    return str(getattr(settings, attr, "") or "")


def format_usd(amount: Decimal) -> str:
    return f"{amount:.2f}"
