"""Assignment endpoints scoped to the calling principal."""
from fastapi import APIRouter, Depends

from ... import schemas
from ...assignments import AssignmentLedger
from ..dependencies import Principal, get_assignment_ledger, get_current_principal

router = APIRouter(tags=["assignments"])


@router.get("/me", response_model=list[schemas.AssignmentResponse])
def list_my_assignments(
    principal: Principal = Depends(get_current_principal),
    ledger: AssignmentLedger = Depends(get_assignment_ledger),
):
    """
    Active assignments of the caller on live issues, earliest start first.
    """
    return ledger.get_active_by_principal(principal.user_id)
