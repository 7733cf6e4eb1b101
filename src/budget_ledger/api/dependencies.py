"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from budget_ledger.services.auth import Identity
from budget_ledger.services.invoice_service import InvoiceService
from budget_ledger.services.ledger_service import SubAccountLedger
from budget_ledger.services.purchase_order_service import PurchaseOrderService
from budget_ledger.store.base import DocumentStore


def get_store(request: Request) -> DocumentStore:
    """Get the application's document store."""
    return request.app.state.store


def get_ledger(request: Request) -> SubAccountLedger:
    return request.app.state.ledger


def get_po_service(request: Request) -> PurchaseOrderService:
    return request.app.state.po_service


def get_invoice_service(request: Request) -> InvoiceService:
    return request.app.state.invoice_service


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_name: Annotated[str | None, Header()] = None,
) -> Identity:
    """Extract the acting user from headers."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-ID header is required",
        )
    return Identity(user_id=x_user_id.strip(), display_name=(x_user_name or "").strip())


# Type aliases for cleaner dependency injection
Store = Annotated[DocumentStore, Depends(get_store)]
Ledger = Annotated[SubAccountLedger, Depends(get_ledger)]
POService = Annotated[PurchaseOrderService, Depends(get_po_service)]
InvoiceSvc = Annotated[InvoiceService, Depends(get_invoice_service)]
CurrentUser = Annotated[Identity, Depends(get_current_user)]
