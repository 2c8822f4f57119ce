"""Process-wide ledger service, handed to routers through FastAPI DI.

Routers never import the instance directly, so tests can swap it with
``app.dependency_overrides[get_ledger_service]``.
"""

from src.nb_credits.application.service import CreditsLedgerService

_ledger_service = CreditsLedgerService()


def get_ledger_service() -> CreditsLedgerService:
    return _ledger_service
