"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    USAGE = "usage"
    REFUND = "refund"
    BONUS = "bonus"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CreditsPackId(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ULTRA = "ultra"


class PlanId(str, Enum):
    BASIC = "basic"
    PRO = "pro"
    MAX = "max"


class PayPalOrderStatus(str, Enum):
    CREATED = "CREATED"
    SAVED = "SAVED"
    APPROVED = "APPROVED"
    VOIDED = "VOIDED"
    COMPLETED = "COMPLETED"
    PAYER_ACTION_REQUIRED = "PAYER_ACTION_REQUIRED"


class CreemWebhookEvent(str, Enum):
    CHECKOUT_COMPLETED = "checkout.completed"
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    ORDER_PAID = "order.paid"
