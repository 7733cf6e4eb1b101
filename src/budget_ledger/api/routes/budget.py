"""Budget view endpoint."""

from typing import Annotated

from fastapi import APIRouter, Path

from budget_ledger.api.dependencies import Ledger
from budget_ledger.api.schemas import BudgetResponse

router = APIRouter(prefix="/projects/{project_id}/budget", tags=["budget"])


@router.get("", response_model=BudgetResponse)
async def get_budget(
    ledger: Ledger,
    project_id: Annotated[str, Path()],
) -> BudgetResponse:
    """Budgeted, committed, actual and available amounts per account and sub-account."""
    summary = await ledger.summarize(project_id)
    return BudgetResponse.model_validate(summary)
