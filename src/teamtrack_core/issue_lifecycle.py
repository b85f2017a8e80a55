"""Issue lifecycle: workflow status changes and hold/resume cycles.

An issue's state is two independent variables:

- workflow status: nullable reference to an IssueStatus (which carries its
  own is_final flag)
- hold flag: true while any IssueHoldReason of the issue is unresolved

A final status and an open hold can coexist. Any status may follow any other;
organizations define their workflow as data, not as a transition matrix.

Every mutating operation runs as one unit of work: the primary write, its
audit records and its activity entry commit together or not at all. All
records of one operation share a single clock reading.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import crud, models, schemas
from .audit import AuditTrailRecorder
from .clock import Clock, utcnow
from .database import unit_of_work
from .exceptions import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger("teamtrack-core.issue_lifecycle")


@dataclass(frozen=True)
class IssueState:
    """Snapshot of the two state variables of an issue."""

    status_id: Optional[UUID]
    is_final: bool
    on_hold: bool
    open_holds: int


class IssueLifecycle:
    """State machine over issue status and holds.

    Args:
        db: Database session owned by the caller
        clock: Source of timestamps
    """

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.audit = AuditTrailRecorder(db)

    # ------------------------------------------------------------------
    # Creation and field updates
    # ------------------------------------------------------------------

    def create(
        self,
        issue_data: schemas.IssueCreate,
        creator_id: UUID,
        organization_id: Optional[UUID] = None,
    ) -> models.Issue:
        """
        Create an issue with no status and record its ``created`` activity.

        Args:
            issue_data: Issue fields
            creator_id: UUID of the creating user
            organization_id: Caller's organization; the team must belong to it

        Returns:
            Created Issue

        Raises:
            NotFoundError: If the team does not exist
            ValidationError: If the title is blank
        """
        if not issue_data.title or not issue_data.title.strip():
            raise ValidationError("Title is required", details={"title": "must not be blank"})

        with unit_of_work(self.db, "create issue"):
            team = crud.get_team(self.db, issue_data.team_id, organization_id)
            if not team:
                raise NotFoundError("Team", issue_data.team_id)

            now = self.clock()
            issue = models.Issue(
                team_id=team.id,
                status_id=None,
                title=issue_data.title.strip(),
                description=issue_data.description,
                priority=issue_data.priority,
                deadline=issue_data.deadline,
                created_by=creator_id,
                created_at=now,
                updated_at=now,
            )
            self.db.add(issue)
            self.db.flush()  # Get issue ID for the activity

            self.audit.record_activity(
                issue.id,
                models.ActivityType.CREATED,
                "Issue created",
                at=now,
                user_id=creator_id,
            )
            issue_id = issue.id

        logger.info(f"Created issue {issue_id} in team {issue_data.team_id}")
        return issue

    def update(
        self,
        issue_id: UUID,
        issue_update: schemas.IssueUpdate,
        actor_id: UUID,
        organization_id: Optional[UUID] = None,
    ) -> models.Issue:
        """
        Update the editable fields of an issue.

        A priority change appends a ``priority_changed`` activity in the same
        transaction. Status and holds are not editable here.

        Raises:
            NotFoundError: If the issue does not exist
            ValidationError: If the new title is blank
        """
        if issue_update.title is not None and not issue_update.title.strip():
            raise ValidationError("Title is required", details={"title": "must not be blank"})

        with unit_of_work(self.db, "update issue"):
            issue = crud.require_issue(self.db, issue_id, organization_id)
            now = self.clock()

            if issue_update.title is not None:
                issue.title = issue_update.title.strip()
            if "description" in issue_update.model_fields_set:
                issue.description = issue_update.description
            if "deadline" in issue_update.model_fields_set:
                issue.deadline = issue_update.deadline

            if issue_update.priority is not None and issue_update.priority != issue.priority:
                old_priority = issue.priority
                issue.priority = issue_update.priority
                new_priority = models.IssuePriority(issue_update.priority)
                self.audit.record_activity(
                    issue.id,
                    models.ActivityType.PRIORITY_CHANGED,
                    f"Priority changed from {old_priority.value} to {new_priority.value}",
                    at=now,
                    user_id=actor_id,
                    metadata={"from": old_priority.value, "to": new_priority.value},
                )

            issue.updated_at = now

        logger.info(f"Updated issue {issue_id}")
        return issue

    # ------------------------------------------------------------------
    # Workflow status
    # ------------------------------------------------------------------

    def update_status(
        self,
        issue_id: UUID,
        new_status_id: UUID,
        actor_id: UUID,
        organization_id: Optional[UUID] = None,
    ) -> models.IssueStatusLog:
        """
        Move an issue to a new workflow status.

        Logs the transition from the status held immediately before the call
        (None if the issue had no status) and a ``status_changed`` activity.

        Args:
            issue_id: Issue UUID
            new_status_id: Target IssueStatus UUID
            actor_id: UUID of the acting user
            organization_id: Caller's organization

        Returns:
            The recorded IssueStatusLog

        Raises:
            NotFoundError: If the issue is missing, or the status is missing or
                belongs to another organization
        """
        with unit_of_work(self.db, "update issue status"):
            issue = crud.require_issue(self.db, issue_id, organization_id)
            issue_org_id = issue.team.organization_id

            new_status = crud.get_issue_status(self.db, new_status_id, issue_org_id)
            if not new_status:
                raise NotFoundError("Issue status", new_status_id)

            old_status_id = issue.status_id
            now = self.clock()

            issue.status_id = new_status.id
            issue.updated_at = now

            transition = self.audit.record_status_transition(
                issue.id,
                from_status_id=old_status_id,
                to_status_id=new_status.id,
                changed_by=actor_id,
                at=now,
            )
            self.audit.record_activity(
                issue.id,
                models.ActivityType.STATUS_CHANGED,
                f"Status changed to {new_status.name}",
                at=now,
                user_id=actor_id,
                metadata={
                    "from_status_id": str(old_status_id) if old_status_id else None,
                    "to_status_id": str(new_status.id),
                    "is_final": new_status.is_final,
                },
            )

        logger.info(f"Issue {issue_id} status: {old_status_id} -> {new_status_id}")
        return transition

    # ------------------------------------------------------------------
    # Hold / resume
    # ------------------------------------------------------------------

    def hold(
        self,
        issue_id: UUID,
        actor_id: UUID,
        reason: str,
        organization_id: Optional[UUID] = None,
    ) -> models.IssueHoldReason:
        """
        Put an issue on hold.

        Holds stack: an issue that is already on hold gets an additional open
        hold record. Resume clears all of them at once.

        Raises:
            ValidationError: If the reason is blank
            NotFoundError: If the issue does not exist
        """
        if not reason or not reason.strip():
            raise ValidationError("Hold reason is required", details={"reason": "must not be blank"})
        reason = reason.strip()

        with unit_of_work(self.db, "hold issue"):
            issue = crud.require_issue(self.db, issue_id, organization_id)
            now = self.clock()

            hold = self.audit.record_hold(issue.id, reason, created_by=actor_id, at=now)
            self.audit.record_activity(
                issue.id,
                models.ActivityType.HOLD,
                f"Issue put on hold: {reason}",
                at=now,
                user_id=actor_id,
                metadata={"hold_id": str(hold.id), "reason": reason},
            )

        logger.info(f"Issue {issue_id} put on hold by {actor_id}")
        return hold

    def resume(
        self,
        issue_id: UUID,
        actor_id: UUID,
        organization_id: Optional[UUID] = None,
    ) -> int:
        """
        Resolve every open hold of an issue and record one ``resumed`` activity.

        When no hold is open (for example a second, concurrent resume that lost
        the race) nothing is written and 0 is returned.

        Returns:
            Number of holds resolved

        Raises:
            NotFoundError: If the issue does not exist
        """
        with unit_of_work(self.db, "resume issue"):
            issue = crud.require_issue(self.db, issue_id, organization_id)
            now = self.clock()

            resolved = self.audit.resolve_open_holds(issue.id, resolved_by=actor_id, at=now)
            if resolved:
                self.audit.record_activity(
                    issue.id,
                    models.ActivityType.RESUMED,
                    "Issue resumed",
                    at=now,
                    user_id=actor_id,
                    metadata={"resolved_holds": resolved},
                )

        if resolved:
            logger.info(f"Issue {issue_id} resumed by {actor_id} ({resolved} holds resolved)")
        else:
            logger.debug(f"Resume of issue {issue_id} found no open holds")
        return resolved

    def get_state(self, issue_id: UUID, organization_id: Optional[UUID] = None) -> IssueState:
        """Read the status/hold pair of an issue."""
        issue = crud.require_issue(self.db, issue_id, organization_id)
        open_holds = (
            self.db.query(models.IssueHoldReason)
            .filter(
                models.IssueHoldReason.issue_id == issue.id,
                models.IssueHoldReason.resolved_at.is_(None),
            )
            .count()
        )
        return IssueState(
            status_id=issue.status_id,
            is_final=bool(issue.status and issue.status.is_final),
            on_hold=open_holds > 0,
            open_holds=open_holds,
        )

    # ------------------------------------------------------------------
    # Timeline, work log, comments
    # ------------------------------------------------------------------

    def get_activities(
        self,
        issue_id: UUID,
        organization_id: Optional[UUID] = None,
        limit: Optional[int] = None,
    ) -> list[models.IssueActivity]:
        """Activity timeline of an issue, newest first."""
        issue = crud.require_issue(self.db, issue_id, organization_id)
        return self.audit.list_activities(issue.id, limit=limit)

    def log_work(
        self,
        issue_id: UUID,
        actor_id: UUID,
        entry: schemas.WorkLogCreate,
        organization_id: Optional[UUID] = None,
    ) -> models.IssueWorkLog:
        """
        Record time spent on an issue.

        Status and holds are untouched and no activity is recorded.

        Raises:
            NotFoundError: If the issue does not exist
            ValidationError: If minutes_spent is not positive
        """
        if entry.minutes_spent <= 0:
            raise ValidationError(
                "minutes_spent must be positive",
                details={"minutes_spent": "must be greater than 0"},
            )

        with unit_of_work(self.db, "log work"):
            issue = crud.require_issue(self.db, issue_id, organization_id)
            work_log = models.IssueWorkLog(
                issue_id=issue.id,
                user_id=actor_id,
                work_date=entry.work_date,
                minutes_spent=entry.minutes_spent,
                notes=entry.notes,
                created_at=self.clock(),
            )
            self.db.add(work_log)

        logger.info(f"Logged {entry.minutes_spent}m on issue {issue_id} for {actor_id}")
        return work_log

    def comment(
        self,
        issue_id: UUID,
        actor_id: UUID,
        content: str,
        organization_id: Optional[UUID] = None,
    ) -> models.IssueComment:
        """
        Add a comment and record a ``commented`` activity.

        Raises:
            ValidationError: If the content is blank
            NotFoundError: If the issue does not exist
        """
        if not content or not content.strip():
            raise ValidationError("Comment content is required", details={"content": "must not be blank"})

        with unit_of_work(self.db, "comment on issue"):
            issue = crud.require_issue(self.db, issue_id, organization_id)
            now = self.clock()

            comment = models.IssueComment(
                issue_id=issue.id,
                user_id=actor_id,
                content=content,
                created_at=now,
                updated_at=now,
            )
            self.db.add(comment)
            self.db.flush()

            self.audit.record_activity(
                issue.id,
                models.ActivityType.COMMENTED,
                "Comment added",
                at=now,
                user_id=actor_id,
                metadata={"comment_id": str(comment.id)},
            )

        logger.info(f"Comment added to issue {issue_id} by {actor_id}")
        return comment

    def _require_own_comment(
        self,
        issue_id: UUID,
        comment_id: UUID,
        actor_id: UUID,
        organization_id: Optional[UUID],
        action: str,
    ) -> models.IssueComment:
        issue = crud.require_issue(self.db, issue_id, organization_id)
        comment = crud.get_comment(self.db, issue.id, comment_id)
        if not comment:
            raise NotFoundError("Comment", comment_id)
        if comment.user_id != actor_id:
            logger.warning(f"Denied {actor_id}: cannot {action} comment {comment_id} of {comment.user_id}")
            raise ForbiddenError(f"You can only {action} your own comments")
        return comment

    def edit_comment(
        self,
        issue_id: UUID,
        comment_id: UUID,
        actor_id: UUID,
        content: str,
        organization_id: Optional[UUID] = None,
    ) -> models.IssueComment:
        """
        Replace the content of a comment. Only its author may edit it.

        Raises:
            ValidationError: If the content is blank
            NotFoundError: If the issue or comment does not exist
            ForbiddenError: If the actor did not write the comment
        """
        if not content or not content.strip():
            raise ValidationError("Comment content is required", details={"content": "must not be blank"})

        with unit_of_work(self.db, "edit comment"):
            comment = self._require_own_comment(issue_id, comment_id, actor_id, organization_id, "edit")
            comment.content = content
            comment.updated_at = self.clock()

        logger.info(f"Comment {comment_id} on issue {issue_id} edited by {actor_id}")
        return comment

    def delete_comment(
        self,
        issue_id: UUID,
        comment_id: UUID,
        actor_id: UUID,
        organization_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a comment. Only its author may delete it.

        The ``commented`` activity stays on the timeline.

        Raises:
            NotFoundError: If the issue or comment does not exist
            ForbiddenError: If the actor did not write the comment
        """
        with unit_of_work(self.db, "delete comment"):
            comment = self._require_own_comment(issue_id, comment_id, actor_id, organization_id, "delete")
            self.db.delete(comment)

        logger.info(f"Comment {comment_id} on issue {issue_id} deleted by {actor_id}")
