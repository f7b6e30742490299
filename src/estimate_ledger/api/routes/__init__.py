"""API routes."""

from estimate_ledger.api.routes.estimates import router as estimates_router
from estimate_ledger.api.routes.health import router as health_router
from estimate_ledger.api.routes.invoices import router as invoices_router
from estimate_ledger.api.routes.payments import router as payments_router

__all__ = ["estimates_router", "health_router", "invoices_router", "payments_router"]
