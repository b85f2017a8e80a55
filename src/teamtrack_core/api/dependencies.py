"""Request-scoped dependencies: principal resolution and permission gates.

Authentication happens upstream. The gateway forwards the verified principal
as ``X-Principal-Id`` and ``X-Organization-Id`` headers; this module only
checks that they name an active user of that organization. A request that
fails here never reaches a core operation.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .. import crud, models
from ..assignments import AssignmentLedger
from ..clock import Clock, utcnow
from ..database import get_db
from ..exceptions import ForbiddenError, UnauthorizedError
from ..issue_lifecycle import IssueLifecycle
from ..permissions import PermissionEvaluator
from ..roles import RoleLike

logger = logging.getLogger("teamtrack-core.dependencies")


@dataclass(frozen=True)
class Principal:
    """Authenticated caller context."""

    user_id: UUID
    organization_id: UUID


def _parse_uuid(value: Optional[str], header: str) -> UUID:
    if not value:
        raise UnauthorizedError(f"Missing {header} header")
    try:
        return UUID(value)
    except ValueError:
        raise UnauthorizedError(f"Invalid {header} header")


def get_current_principal(
    x_principal_id: Optional[str] = Header(None),
    x_organization_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Principal:
    """
    Resolve the authenticated principal from gateway headers.

    Raises:
        UnauthorizedError: If a header is missing or malformed, or the user is
            unknown, inactive or outside the given organization
    """
    user_id = _parse_uuid(x_principal_id, "X-Principal-Id")
    organization_id = _parse_uuid(x_organization_id, "X-Organization-Id")

    user = crud.get_user_by_id(db, user_id, organization_id)
    if not user or not user.is_active:
        logger.warning(f"Rejected unknown or inactive principal {user_id} for org {organization_id}")
        raise UnauthorizedError()

    return Principal(user_id=user.id, organization_id=organization_id)


def get_clock() -> Clock:
    """Clock used by the services; overridden in tests."""
    return utcnow


def get_permission_evaluator(db: Session = Depends(get_db)) -> PermissionEvaluator:
    return PermissionEvaluator(db)


def get_issue_lifecycle(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> IssueLifecycle:
    return IssueLifecycle(db, clock=clock)


def get_assignment_ledger(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AssignmentLedger:
    return AssignmentLedger(db, clock=clock)


def require_team_role(
    evaluator: PermissionEvaluator,
    principal: Principal,
    team_id: UUID,
    role: RoleLike,
) -> None:
    """
    Enforce a minimum team role.

    Raises:
        ForbiddenError: If the evaluator denies the role
    """
    if not evaluator.evaluate(principal.user_id, team_id, role):
        accepted = ", ".join(r.value for r in evaluator.hierarchy.roles_at_least(role))
        logger.warning(f"Denied {principal.user_id}: requires {role} on team {team_id}")
        raise ForbiddenError(f"Requires one of these team roles: {accepted}")


def require_issue_edit(
    evaluator: PermissionEvaluator,
    principal: Principal,
    issue: models.Issue,
) -> None:
    """
    Enforce edit rights on a specific issue.

    Raises:
        ForbiddenError: If the principal may not edit the issue
    """
    if not evaluator.can_edit_issue(principal.user_id, issue.team_id, issue):
        logger.warning(f"Denied {principal.user_id}: cannot edit issue {issue.id}")
        raise ForbiddenError("Not allowed to edit this issue")
