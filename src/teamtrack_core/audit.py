"""Append-only audit trail for issues.

Writes the four audit record kinds: activities, status transitions, holds
and assignments. Every write is added to the caller's session and flushed;
nothing here commits. The surrounding unit of work decides whether the
records become visible, so they land together with the primary mutation or
not at all.
"""
import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("teamtrack-core.audit")


class AuditTrailRecorder:
    """Appends audit records for issues to a session."""

    def __init__(self, db: Session):
        self.db = db

    def record_activity(
        self,
        issue_id: UUID,
        activity_type: models.ActivityType,
        description: str,
        at: datetime,
        user_id: Optional[UUID] = None,
        metadata: Optional[dict] = None,
    ) -> models.IssueActivity:
        """
        Append a timeline entry.

        Args:
            issue_id: Issue UUID
            activity_type: Kind of activity
            description: Human-readable summary
            at: Timestamp; callers pass the same clock reading used for the
                records this activity accompanies
            user_id: Acting user, if any
            metadata: Optional structured details

        Returns:
            The pending IssueActivity
        """
        activity = models.IssueActivity(
            issue_id=issue_id,
            user_id=user_id,
            activity_type=activity_type,
            description=description,
            activity_metadata=metadata or {},
            created_at=at,
        )
        self.db.add(activity)
        self.db.flush()
        logger.debug(f"Recorded {activity_type.value} activity for issue {issue_id}")
        return activity

    def record_status_transition(
        self,
        issue_id: UUID,
        from_status_id: Optional[UUID],
        to_status_id: Optional[UUID],
        changed_by: Optional[UUID],
        at: datetime,
    ) -> models.IssueStatusLog:
        """Append a status transition (from may be None for "no status")."""
        entry = models.IssueStatusLog(
            issue_id=issue_id,
            from_status_id=from_status_id,
            to_status_id=to_status_id,
            changed_by=changed_by,
            changed_at=at,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def record_hold(
        self,
        issue_id: UUID,
        reason: str,
        created_by: Optional[UUID],
        at: datetime,
    ) -> models.IssueHoldReason:
        """Append an open hold."""
        hold = models.IssueHoldReason(
            issue_id=issue_id,
            reason=reason,
            created_by=created_by,
            created_at=at,
            resolved_at=None,
        )
        self.db.add(hold)
        self.db.flush()
        return hold

    def resolve_open_holds(
        self,
        issue_id: UUID,
        resolved_by: Optional[UUID],
        at: datetime,
    ) -> int:
        """
        Resolve every unresolved hold of an issue in one statement.

        Rows that already carry resolved_at are never touched, so concurrent
        callers cannot overwrite each other's resolution.

        Returns:
            Number of holds resolved by this call
        """
        result = self.db.execute(
            update(models.IssueHoldReason)
            .where(
                models.IssueHoldReason.issue_id == issue_id,
                models.IssueHoldReason.resolved_at.is_(None),
            )
            .values(resolved_at=at, resolved_by=resolved_by)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def record_assignment(
        self,
        issue_id: UUID,
        user_id: UUID,
        start_date: date,
        end_date: date,
        assigned_by: Optional[UUID],
        at: datetime,
    ) -> models.IssueAssignment:
        """Append an active assignment window."""
        assignment = models.IssueAssignment(
            issue_id=issue_id,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            assigned_by=assigned_by,
            assigned_at=at,
            is_active=True,
        )
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def list_activities(self, issue_id: UUID, limit: Optional[int] = None) -> list[models.IssueActivity]:
        """Activities of an issue, newest first."""
        query = (
            self.db.query(models.IssueActivity)
            .filter(models.IssueActivity.issue_id == issue_id)
            .order_by(models.IssueActivity.created_at.desc(), models.IssueActivity.id)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def list_status_transitions(self, issue_id: UUID) -> list[models.IssueStatusLog]:
        """Status transitions of an issue in the order they were made."""
        return (
            self.db.query(models.IssueStatusLog)
            .filter(models.IssueStatusLog.issue_id == issue_id)
            .order_by(models.IssueStatusLog.changed_at.asc())
            .all()
        )

    def list_holds(self, issue_id: UUID, open_only: bool = False) -> list[models.IssueHoldReason]:
        """Holds of an issue, oldest first."""
        query = self.db.query(models.IssueHoldReason).filter(
            models.IssueHoldReason.issue_id == issue_id
        )
        if open_only:
            query = query.filter(models.IssueHoldReason.resolved_at.is_(None))
        return query.order_by(models.IssueHoldReason.created_at.asc()).all()
