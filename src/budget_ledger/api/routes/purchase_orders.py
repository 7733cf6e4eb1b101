"""Purchase order API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Query, Response, status

from budget_ledger.api.dependencies import CurrentUser, POService
from budget_ledger.api.schemas import (
    CancelRequest,
    ErrorResponse,
    PurchaseOrderCreate,
    PurchaseOrderListResponse,
    PurchaseOrderResponse,
    PurchaseOrderTransitionResponse,
    PurchaseOrderUpdate,
    ReasonRequest,
    ReauthRequest,
    ReconciliationResponse,
)
from budget_ledger.services.reconciliation import TransitionResult

router = APIRouter(prefix="/projects/{project_id}/pos", tags=["purchase-orders"])

ProjectId = Annotated[str, Path()]
PoId = Annotated[str, Path()]


def _transition_response(result: TransitionResult) -> PurchaseOrderTransitionResponse:
    return PurchaseOrderTransitionResponse(
        purchase_order=PurchaseOrderResponse.model_validate(result.entity),
        reconciliation=ReconciliationResponse.from_result(result.reconciliation),
    )


# ============================================================================
# Purchase Order CRUD
# ============================================================================


@router.post(
    "",
    response_model=PurchaseOrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    payload: PurchaseOrderCreate,
) -> PurchaseOrderResponse:
    """Create a new purchase order in draft status."""
    po = await service.create_draft(
        project_id,
        user,
        [item.to_line_item() for item in payload.items],
        supplier=payload.supplier,
        description=payload.description,
    )
    return PurchaseOrderResponse.model_validate(po)


@router.get("", response_model=PurchaseOrderListResponse)
async def list_purchase_orders(
    service: POService,
    project_id: ProjectId,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PurchaseOrderListResponse:
    """List purchase orders of a project, highest number first."""
    pos = await service.list(project_id, status=status_filter)
    return PurchaseOrderListResponse(
        items=[PurchaseOrderResponse.model_validate(po) for po in pos],
        total=len(pos),
    )


@router.get(
    "/{po_id}",
    response_model=PurchaseOrderResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_purchase_order(
    service: POService,
    project_id: ProjectId,
    po_id: PoId,
) -> PurchaseOrderResponse:
    """Get a specific purchase order by ID."""
    return PurchaseOrderResponse.model_validate(await service.get(project_id, po_id))


@router.put(
    "/{po_id}",
    response_model=PurchaseOrderResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
    payload: PurchaseOrderUpdate,
) -> PurchaseOrderResponse:
    """Edit the items of a draft or rejected purchase order."""
    po = await service.update_draft(
        project_id,
        po_id,
        user,
        [item.to_line_item() for item in payload.items],
        supplier=payload.supplier,
        description=payload.description,
    )
    return PurchaseOrderResponse.model_validate(po)


@router.delete(
    "/{po_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
) -> Response:
    """Delete a draft purchase order."""
    await service.delete_draft(project_id, po_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Purchase Order State Transitions
# ============================================================================


TRANSITION_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post("/{po_id}/submit", response_model=PurchaseOrderTransitionResponse, responses=TRANSITION_RESPONSES)
async def submit_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
) -> PurchaseOrderTransitionResponse:
    """Send a draft purchase order for approval."""
    return _transition_response(await service.submit(project_id, po_id, user))


@router.post("/{po_id}/approve", response_model=PurchaseOrderTransitionResponse, responses=TRANSITION_RESPONSES)
async def approve_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
) -> PurchaseOrderTransitionResponse:
    """Approve a pending purchase order, committing its items."""
    return _transition_response(await service.approve(project_id, po_id, user))


@router.post("/{po_id}/reject", response_model=PurchaseOrderTransitionResponse, responses=TRANSITION_RESPONSES)
async def reject_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
    payload: ReasonRequest,
) -> PurchaseOrderTransitionResponse:
    """Reject a pending purchase order."""
    return _transition_response(await service.reject(project_id, po_id, user, payload.reason))


@router.post(
    "/{po_id}/close",
    response_model=PurchaseOrderTransitionResponse,
    responses={**TRANSITION_RESPONSES, 401: {"model": ErrorResponse}},
)
async def close_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
    payload: ReauthRequest,
) -> PurchaseOrderTransitionResponse:
    """Close an approved purchase order, releasing its uninvoiced commitment."""
    return _transition_response(await service.close(project_id, po_id, user, payload.password))


@router.post(
    "/{po_id}/reopen",
    response_model=PurchaseOrderTransitionResponse,
    responses={**TRANSITION_RESPONSES, 401: {"model": ErrorResponse}},
)
async def reopen_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
    payload: ReauthRequest,
) -> PurchaseOrderTransitionResponse:
    """Reopen a closed purchase order, restoring its uninvoiced commitment."""
    return _transition_response(await service.reopen(project_id, po_id, user, payload.password))


@router.post(
    "/{po_id}/cancel",
    response_model=PurchaseOrderTransitionResponse,
    responses={**TRANSITION_RESPONSES, 401: {"model": ErrorResponse}},
)
async def cancel_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
    payload: CancelRequest,
) -> PurchaseOrderTransitionResponse:
    """Cancel a purchase order, releasing its whole commitment."""
    return _transition_response(
        await service.cancel(project_id, po_id, user, payload.password, payload.reason)
    )


@router.post("/{po_id}/modify", response_model=PurchaseOrderTransitionResponse, responses=TRANSITION_RESPONSES)
async def modify_purchase_order(
    service: POService,
    user: CurrentUser,
    project_id: ProjectId,
    po_id: PoId,
    payload: ReasonRequest,
) -> PurchaseOrderTransitionResponse:
    """Return an approved purchase order to draft under a new version."""
    return _transition_response(await service.modify(project_id, po_id, user, payload.reason))
