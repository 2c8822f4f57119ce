"""Provider clients and payment services for FastAPI DI.

Clients are built on first use from settings (None while a provider is not
configured) and closed by ``close_payment_clients`` at shutdown. Tests swap
the services with ``app.dependency_overrides``.
"""

from config.settings import settings
from src.nb_credits.api.dependencies import get_ledger_service
from src.nb_payments.application.service import CreemPaymentService, PayPalPaymentService
from src.nb_payments.infrastructure.creem_client import CreemClient
from src.nb_payments.infrastructure.paypal_client import PayPalClient

_paypal_client: PayPalClient | None = None
_creem_client: CreemClient | None = None


def get_paypal_client() -> PayPalClient | None:
    global _paypal_client
    if _paypal_client is None and settings.paypal_configured:
        _paypal_client = PayPalClient(
            client_id=settings.PAYPAL_CLIENT_ID,
            client_secret=settings.PAYPAL_CLIENT_SECRET,
            api_url=settings.paypal_api_url,
        )
    return _paypal_client


def get_creem_client() -> CreemClient | None:
    global _creem_client
    if _creem_client is None and settings.creem_configured:
        _creem_client = CreemClient(
            api_key=settings.CREEM_API_KEY,
            api_url=settings.CREEM_API_URL,
        )
    return _creem_client


def get_paypal_service() -> PayPalPaymentService:
    return PayPalPaymentService(get_ledger_service(), get_paypal_client(), settings)


def get_creem_service() -> CreemPaymentService:
    return CreemPaymentService(get_ledger_service(), get_creem_client(), settings)


async def close_payment_clients() -> None:
    global _paypal_client, _creem_client
    if _paypal_client is not None:
        await _paypal_client.aclose()
        _paypal_client = None
    if _creem_client is not None:
        await _creem_client.aclose()
        _creem_client = None
