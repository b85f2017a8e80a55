"""Workflow status endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db
from ..dependencies import Principal, get_current_principal

router = APIRouter(tags=["statuses"])


@router.get("/", response_model=list[schemas.IssueStatusResponse])
def list_statuses(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Workflow statuses of the caller's organization in display order."""
    return crud.get_statuses_for_organization(db, principal.organization_id)
