"""Team-scoped permission checks.

The evaluator only answers yes/no. It never raises for a missing membership
and never blocks a call on its own: the HTTP layer asks first and raises
ForbiddenError on a denial.

Rules:
- evaluate: the principal's team role must be at or above the required role.
- can_edit_issue: managers and assistants may edit any issue of the team,
  members only issues they hold an active assignment on, stakeholders never.
"""
import logging
from typing import Union
from uuid import UUID

from sqlalchemy.orm import Session

from . import crud, models
from .roles import DEFAULT_ROLE_HIERARCHY, RoleHierarchy, RoleLike

logger = logging.getLogger("teamtrack-core.permissions")


class PermissionEvaluator:
    """Answers capability questions for a principal within a team.

    Args:
        db: Database session used for membership and assignment reads
        hierarchy: Role ordering; defaults to manager > assistant > member > stakeholder
    """

    def __init__(self, db: Session, hierarchy: RoleHierarchy = DEFAULT_ROLE_HIERARCHY):
        self.db = db
        self.hierarchy = hierarchy

    def evaluate(self, principal_id: UUID, team_id: UUID, required_role: RoleLike) -> bool:
        """
        Check if a principal holds ``required_role`` or higher in a team.

        Args:
            principal_id: User UUID
            team_id: Team UUID
            required_role: Minimum role (enum member or its string value)

        Returns:
            True if allowed; False if there is no membership or the held role is
            below the requirement or absent from the hierarchy
        """
        required = self.hierarchy.coerce(required_role)
        held = crud.get_user_team_role(self.db, team_id, principal_id)
        if held is None:
            logger.debug(f"User {principal_id} is not a member of team {team_id}")
            return False
        if held not in self.hierarchy.order:
            logger.debug(f"Role {held.value} of {principal_id} is outside the hierarchy; denied")
            return False

        allowed = self.hierarchy.satisfies(held, required)
        logger.debug(
            f"Role check for {principal_id} on team {team_id}: "
            f"{held.value} vs {required.value} -> {allowed}"
        )
        return allowed

    def can_edit_issue(
        self,
        principal_id: UUID,
        team_id: UUID,
        issue: Union[models.Issue, UUID],
    ) -> bool:
        """
        Check if a principal may edit a specific issue.

        Members qualify through an active assignment only; the assignment
        window dates are not compared with today.

        Args:
            principal_id: User UUID
            team_id: Team UUID the check is made against
            issue: Issue instance or its UUID

        Returns:
            True if the principal may edit the issue
        """
        role = crud.get_user_team_role(self.db, team_id, principal_id)
        if role is None:
            return False

        if role in (models.TeamRole.MANAGER, models.TeamRole.ASSISTANT):
            return True

        if role == models.TeamRole.MEMBER:
            issue_id = issue.id if isinstance(issue, models.Issue) else issue
            return self.has_active_assignment(principal_id, issue_id)

        # Stakeholders cannot edit
        return False

    def has_active_assignment(self, principal_id: UUID, issue_id: UUID) -> bool:
        """True if the principal has an active assignment on the issue."""
        assignment = (
            self.db.query(models.IssueAssignment.id)
            .filter(
                models.IssueAssignment.issue_id == issue_id,
                models.IssueAssignment.user_id == principal_id,
                models.IssueAssignment.is_active.is_(True),
            )
            .first()
        )
        return assignment is not None
