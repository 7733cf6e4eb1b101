"""API routes."""

from budget_ledger.api.routes.budget import router as budget_router
from budget_ledger.api.routes.health import router as health_router
from budget_ledger.api.routes.invoices import router as invoices_router
from budget_ledger.api.routes.purchase_orders import router as purchase_orders_router

__all__ = ["budget_router", "health_router", "invoices_router", "purchase_orders_router"]
