"""FastAPI dependencies resolving the ledger service owned by the app."""

from __future__ import annotations

from fastapi import Request

from coupon_ledger import LedgerService


def get_ledger_service(request: Request) -> LedgerService:
    """Return the service the application lifespan attached to ``app.state``."""

    service = getattr(request.app.state, "ledger_service", None)
    if service is None:
        raise RuntimeError("Ledger service is not initialised; is the app lifespan running?")
    return service
