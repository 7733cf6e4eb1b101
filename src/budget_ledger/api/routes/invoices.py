"""Invoice API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Query, Response, status

from budget_ledger.api.dependencies import CurrentUser, InvoiceSvc
from budget_ledger.api.schemas import (
    CancelRequest,
    ErrorResponse,
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceTransitionResponse,
    PaymentRequest,
    ReasonRequest,
    ReconciliationResponse,
)
from budget_ledger.services.reconciliation import TransitionResult

router = APIRouter(prefix="/projects/{project_id}/invoices", tags=["invoices"])

ProjectId = Annotated[str, Path()]
InvoiceId = Annotated[str, Path()]

TRANSITION_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _transition_response(result: TransitionResult) -> InvoiceTransitionResponse:
    return InvoiceTransitionResponse(
        invoice=InvoiceResponse.model_validate(result.entity),
        reconciliation=ReconciliationResponse.from_result(result.reconciliation),
    )


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_invoice(
    service: InvoiceSvc,
    user: CurrentUser,
    project_id: ProjectId,
    payload: InvoiceCreate,
) -> InvoiceResponse:
    """Register an invoice awaiting approval."""
    invoice = await service.create(
        project_id,
        user,
        [item.to_line_item() for item in payload.items],
        due_date=payload.due_date,
        po_id=payload.po_id,
        supplier=payload.supplier,
        description=payload.description,
    )
    return InvoiceResponse.model_validate(invoice)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    service: InvoiceSvc,
    project_id: ProjectId,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> InvoiceListResponse:
    """List invoices, newest first. Pending invoices past due are marked overdue."""
    invoices = await service.list(project_id, status=status_filter)
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(i) for i in invoices],
        total=len(invoices),
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice(
    service: InvoiceSvc,
    project_id: ProjectId,
    invoice_id: InvoiceId,
) -> InvoiceResponse:
    """Get a specific invoice by ID."""
    return InvoiceResponse.model_validate(await service.get(project_id, invoice_id))


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_invoice(
    service: InvoiceSvc,
    user: CurrentUser,
    project_id: ProjectId,
    invoice_id: InvoiceId,
) -> Response:
    """Delete an invoice awaiting approval or rejected."""
    await service.delete(project_id, invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/approve", response_model=InvoiceTransitionResponse, responses=TRANSITION_RESPONSES)
async def approve_invoice(
    service: InvoiceSvc,
    user: CurrentUser,
    project_id: ProjectId,
    invoice_id: InvoiceId,
) -> InvoiceTransitionResponse:
    """Approve an invoice for payment."""
    return _transition_response(await service.approve(project_id, invoice_id, user))


@router.post("/{invoice_id}/reject", response_model=InvoiceTransitionResponse, responses=TRANSITION_RESPONSES)
async def reject_invoice(
    service: InvoiceSvc,
    user: CurrentUser,
    project_id: ProjectId,
    invoice_id: InvoiceId,
    payload: ReasonRequest,
) -> InvoiceTransitionResponse:
    """Reject an invoice awaiting approval."""
    return _transition_response(await service.reject(project_id, invoice_id, user, payload.reason))


@router.post("/{invoice_id}/pay", response_model=InvoiceTransitionResponse, responses=TRANSITION_RESPONSES)
async def pay_invoice(
    service: InvoiceSvc,
    user: CurrentUser,
    project_id: ProjectId,
    invoice_id: InvoiceId,
    payload: PaymentRequest | None = None,
) -> InvoiceTransitionResponse:
    """Mark an invoice paid, moving its amounts from committed to actual."""
    payment_date = payload.payment_date if payload else None
    return _transition_response(
        await service.mark_paid(project_id, invoice_id, user, payment_date=payment_date)
    )


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceTransitionResponse,
    responses={**TRANSITION_RESPONSES, 401: {"model": ErrorResponse}},
)
async def cancel_invoice(
    service: InvoiceSvc,
    user: CurrentUser,
    project_id: ProjectId,
    invoice_id: InvoiceId,
    payload: CancelRequest,
) -> InvoiceTransitionResponse:
    """Cancel an invoice, reversing its payment if it was paid."""
    return _transition_response(
        await service.cancel(project_id, invoice_id, user, payload.password, payload.reason)
    )
