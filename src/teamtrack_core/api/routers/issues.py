"""Issues API endpoints: CRUD, lifecycle, assignments, work log, comments."""
import logging
from math import ceil
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...assignments import AssignmentLedger
from ...clock import Clock
from ...database import get_db
from ...exceptions import NotFoundError
from ...issue_lifecycle import IssueLifecycle
from ...permissions import PermissionEvaluator
from ..dependencies import (
    Principal,
    get_assignment_ledger,
    get_clock,
    get_current_principal,
    get_issue_lifecycle,
    get_permission_evaluator,
    require_issue_edit,
    require_team_role,
)

logger = logging.getLogger("teamtrack-core.issues")

router = APIRouter(tags=["issues"])


def _load_issue(db: Session, issue_id: UUID, principal: Principal) -> models.Issue:
    """Issue visible to the principal's organization, or NotFoundError."""
    return crud.require_issue(db, issue_id, principal.organization_id)


def _issue_state_response(issue_id: UUID, state) -> schemas.IssueStateResponse:
    return schemas.IssueStateResponse(
        issue_id=issue_id,
        status_id=state.status_id,
        is_final=state.is_final,
        on_hold=state.on_hold,
        open_holds=state.open_holds,
    )


# ============================================================================
# Issue CRUD
# ============================================================================

@router.post("/", response_model=schemas.IssueResponse, status_code=201)
def create_issue(
    issue: schemas.IssueCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """
    Create a new issue in a team. The issue starts without a status.

    - **team_id**: Team UUID (caller must be at least a member)
    - **title**: Issue title
    - **priority**: LOW, NORMAL, HIGH or URGENT (default: NORMAL)
    - **deadline**: Optional due date
    """
    team = crud.get_team(db, issue.team_id, principal.organization_id)
    if not team:
        raise NotFoundError("Team", issue.team_id)
    require_team_role(evaluator, principal, team.id, models.TeamRole.MEMBER)

    return lifecycle.create(issue, creator_id=principal.user_id, organization_id=principal.organization_id)


@router.get("/", response_model=schemas.IssueListResponse)
def list_issues(
    team_id: UUID = Query(..., description="Team to list issues for"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
):
    """
    List the live issues of a team, newest first.

    - **team_id**: Team UUID (caller needs any role on the team)
    - **page**: Page number (starts at 1)
    - **page_size**: Number of items per page (1-100)
    """
    team = crud.get_team(db, team_id, principal.organization_id)
    if not team:
        raise NotFoundError("Team", team_id)
    require_team_role(evaluator, principal, team.id, models.TeamRole.STAKEHOLDER)

    skip = (page - 1) * page_size
    issues, total = crud.get_issues_by_team(db, team.id, skip=skip, limit=page_size)

    return schemas.IssueListResponse(
        items=issues,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{issue_id}", response_model=schemas.IssueResponse)
def get_issue(
    issue_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
):
    """Get a specific issue by ID."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.STAKEHOLDER)
    return issue


@router.put("/{issue_id}", response_model=schemas.IssueResponse)
def update_issue(
    issue_id: UUID,
    issue_update: schemas.IssueUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """
    Update issue fields.

    Only provided fields are changed. A priority change is recorded on the
    activity timeline. Use the status and hold endpoints for state changes.
    """
    issue = _load_issue(db, issue_id, principal)
    require_issue_edit(evaluator, principal, issue)
    return lifecycle.update(issue.id, issue_update, actor_id=principal.user_id,
                            organization_id=principal.organization_id)


@router.delete("/{issue_id}", status_code=204)
def delete_issue(
    issue_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    clock: Clock = Depends(get_clock),
):
    """Soft-delete an issue. Requires assistant or manager."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.ASSISTANT)
    crud.soft_delete_issue(db, issue.id, principal.organization_id, clock=clock)
    return Response(status_code=204)


# ============================================================================
# Lifecycle: status, hold, resume
# ============================================================================

@router.get("/{issue_id}/state", response_model=schemas.IssueStateResponse)
def get_issue_state(
    issue_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """Workflow status and hold flag of an issue."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.STAKEHOLDER)
    state = lifecycle.get_state(issue.id, principal.organization_id)
    return _issue_state_response(issue.id, state)


@router.post("/{issue_id}/status", response_model=schemas.StatusTransitionResponse)
def change_issue_status(
    issue_id: UUID,
    request: schemas.StatusChangeRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """
    Move an issue to another workflow status.

    Any status of the organization may follow any other. The hold flag is
    not affected.
    """
    issue = _load_issue(db, issue_id, principal)
    require_issue_edit(evaluator, principal, issue)
    return lifecycle.update_status(issue.id, request.status_id, actor_id=principal.user_id,
                                   organization_id=principal.organization_id)


@router.post("/{issue_id}/hold", response_model=schemas.HoldResponse, status_code=201)
def hold_issue(
    issue_id: UUID,
    request: schemas.HoldRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """Put an issue on hold with a reason. Holds on an issue already on hold stack."""
    issue = _load_issue(db, issue_id, principal)
    require_issue_edit(evaluator, principal, issue)
    return lifecycle.hold(issue.id, actor_id=principal.user_id, reason=request.reason,
                          organization_id=principal.organization_id)


@router.post("/{issue_id}/resume", response_model=schemas.ResumeResponse)
def resume_issue(
    issue_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """Resolve every open hold of an issue. Resuming an issue that is not on hold is a no-op."""
    issue = _load_issue(db, issue_id, principal)
    require_issue_edit(evaluator, principal, issue)
    resolved = lifecycle.resume(issue.id, actor_id=principal.user_id,
                                organization_id=principal.organization_id)
    return schemas.ResumeResponse(issue_id=issue.id, resolved_holds=resolved)


@router.get("/{issue_id}/activities", response_model=list[schemas.ActivityResponse])
def list_issue_activities(
    issue_id: UUID,
    limit: Optional[int] = Query(None, ge=1, le=500, description="Maximum entries to return"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """Activity timeline of an issue, newest first."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.STAKEHOLDER)
    return lifecycle.get_activities(issue.id, principal.organization_id, limit=limit)


# ============================================================================
# Assignments
# ============================================================================

@router.post("/{issue_id}/assign", response_model=schemas.AssignmentResponse, status_code=201)
def assign_issue(
    issue_id: UUID,
    request: schemas.AssignmentRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    ledger: AssignmentLedger = Depends(get_assignment_ledger),
):
    """
    Assign a user to an issue for a date window.

    - **user_id**: Assignee (same organization)
    - **start_date** / **end_date**: Inclusive window; end must not precede start

    Existing assignments stay active.
    """
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.ASSISTANT)
    return ledger.assign(
        issue.id,
        request.user_id,
        start_date=request.start_date,
        end_date=request.end_date,
        actor_id=principal.user_id,
        organization_id=principal.organization_id,
    )


@router.get("/{issue_id}/assignments", response_model=list[schemas.AssignmentResponse])
def list_issue_assignments(
    issue_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    ledger: AssignmentLedger = Depends(get_assignment_ledger),
):
    """All assignments of an issue, most recent first."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.STAKEHOLDER)
    return ledger.get_by_issue(issue.id, principal.organization_id)


# ============================================================================
# Work log and comments
# ============================================================================

@router.post("/{issue_id}/worklog", response_model=schemas.WorkLogResponse, status_code=201)
def log_work(
    issue_id: UUID,
    entry: schemas.WorkLogCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """Record time spent on an issue. Does not touch status or holds."""
    issue = _load_issue(db, issue_id, principal)
    require_issue_edit(evaluator, principal, issue)
    return lifecycle.log_work(issue.id, actor_id=principal.user_id, entry=entry,
                              organization_id=principal.organization_id)


@router.get("/{issue_id}/worklog", response_model=list[schemas.WorkLogResponse])
def list_work_logs(
    issue_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
):
    """Work log entries of an issue, most recent work date first."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.STAKEHOLDER)
    return crud.get_work_logs(db, issue.id)


@router.post("/{issue_id}/comments", response_model=schemas.CommentResponse, status_code=201)
def add_comment(
    issue_id: UUID,
    comment: schemas.CommentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """Comment on an issue. Requires member or higher."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.MEMBER)
    return lifecycle.comment(issue.id, actor_id=principal.user_id, content=comment.content,
                             organization_id=principal.organization_id)


@router.get("/{issue_id}/comments", response_model=list[schemas.CommentResponse])
def list_comments(
    issue_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
):
    """Comments on an issue, oldest first."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.STAKEHOLDER)
    return crud.get_comments(db, issue.id)


@router.put("/{issue_id}/comments/{comment_id}", response_model=schemas.CommentResponse)
def edit_comment(
    issue_id: UUID,
    comment_id: UUID,
    comment: schemas.CommentUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """Edit one of your own comments on an issue."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.STAKEHOLDER)
    return lifecycle.edit_comment(issue.id, comment_id, actor_id=principal.user_id,
                                  content=comment.content, organization_id=principal.organization_id)


@router.delete("/{issue_id}/comments/{comment_id}", status_code=204)
def delete_comment(
    issue_id: UUID,
    comment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    lifecycle: IssueLifecycle = Depends(get_issue_lifecycle),
):
    """Delete one of your own comments. The timeline entry of the comment stays."""
    issue = _load_issue(db, issue_id, principal)
    require_team_role(evaluator, principal, issue.team_id, models.TeamRole.STAKEHOLDER)
    lifecycle.delete_comment(issue.id, comment_id, actor_id=principal.user_id,
                             organization_id=principal.organization_id)
    return Response(status_code=204)
