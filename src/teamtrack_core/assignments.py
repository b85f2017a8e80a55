"""Assignment ledger: who is tasked on an issue, for which date range.

Assigning never deactivates earlier assignments; an issue can have several
active assignees at once. Callers who want a single assignee call
deactivate_old_assignments explicitly before assigning.
"""
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from . import crud, models
from .audit import AuditTrailRecorder
from .clock import Clock, utcnow
from .database import unit_of_work
from .exceptions import ValidationError

logger = logging.getLogger("teamtrack-core.assignments")


def validate_assignment_window(start_date: date, end_date: date) -> None:
    """
    Validate an assignment date range.

    Raises:
        ValidationError: If end_date is before start_date
    """
    if end_date < start_date:
        raise ValidationError(
            "end date must be on or after start date",
            details={"end_date": f"{end_date.isoformat()} is before {start_date.isoformat()}"},
        )


class AssignmentLedger:
    """Creates and reads assignment windows.

    Args:
        db: Database session owned by the caller
        clock: Source of timestamps
    """

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.audit = AuditTrailRecorder(db)

    def assign(
        self,
        issue_id: UUID,
        principal_id: UUID,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        organization_id: Optional[UUID] = None,
    ) -> models.IssueAssignment:
        """
        Assign a principal to an issue for a date window.

        Args:
            issue_id: Issue UUID
            principal_id: UUID of the user being assigned
            start_date: First day of the window
            end_date: Last day of the window (may equal start_date)
            actor_id: UUID of the user making the assignment
            organization_id: Caller's organization; issue and assignee must belong to it

        Returns:
            The new active IssueAssignment

        Raises:
            NotFoundError: If the issue or the principal does not exist
            ValidationError: If end_date is before start_date
        """
        with unit_of_work(self.db, "assign issue"):
            issue = crud.require_issue(self.db, issue_id, organization_id)
            assignee = crud.require_user(self.db, principal_id, organization_id)
            validate_assignment_window(start_date, end_date)

            now = self.clock()
            assignment = self.audit.record_assignment(
                issue.id,
                assignee.id,
                start_date=start_date,
                end_date=end_date,
                assigned_by=actor_id,
                at=now,
            )
            self.audit.record_activity(
                issue.id,
                models.ActivityType.ASSIGNED,
                f"Issue assigned to {assignee.full_name or assignee.email}",
                at=now,
                user_id=actor_id,
                metadata={
                    "assignment_id": str(assignment.id),
                    "user_id": str(assignee.id),
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                },
            )

        logger.info(f"Assigned issue {issue_id} to {principal_id} ({start_date}..{end_date})")
        return assignment

    def deactivate_old_assignments(
        self,
        issue_id: UUID,
        organization_id: Optional[UUID] = None,
    ) -> int:
        """
        Mark every active assignment of an issue inactive.

        Rows are kept for history. Not called by assign().

        Returns:
            Number of assignments deactivated
        """
        with unit_of_work(self.db, "deactivate assignments"):
            issue = crud.require_issue(self.db, issue_id, organization_id)
            result = self.db.execute(
                update(models.IssueAssignment)
                .where(
                    models.IssueAssignment.issue_id == issue.id,
                    models.IssueAssignment.is_active.is_(True),
                )
                .values(is_active=False)
                .execution_options(synchronize_session="fetch")
            )
            deactivated = result.rowcount or 0

        logger.info(f"Deactivated {deactivated} assignments on issue {issue_id}")
        return deactivated

    def get_by_issue(
        self,
        issue_id: UUID,
        organization_id: Optional[UUID] = None,
    ) -> list[models.IssueAssignment]:
        """All assignments of an issue, most recently assigned first."""
        issue = crud.require_issue(self.db, issue_id, organization_id)
        return (
            self.db.query(models.IssueAssignment)
            .options(joinedload(models.IssueAssignment.user))
            .filter(models.IssueAssignment.issue_id == issue.id)
            .order_by(models.IssueAssignment.assigned_at.desc())
            .all()
        )

    def get_active_by_principal(self, principal_id: UUID) -> list[models.IssueAssignment]:
        """Active assignments of a principal on live issues, earliest start first."""
        return (
            self.db.query(models.IssueAssignment)
            .join(models.Issue, models.Issue.id == models.IssueAssignment.issue_id)
            .filter(
                models.IssueAssignment.user_id == principal_id,
                models.IssueAssignment.is_active.is_(True),
                models.Issue.deleted_at.is_(None),
            )
            .order_by(models.IssueAssignment.start_date.asc())
            .all()
        )
