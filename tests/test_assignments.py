"""Tests for the assignment ledger."""
from datetime import date
from uuid import uuid4

import pytest

from teamtrack_core import models, schemas
from teamtrack_core.assignments import AssignmentLedger, validate_assignment_window
from teamtrack_core.exceptions import NotFoundError, ValidationError
from teamtrack_core.issue_lifecycle import IssueLifecycle
from teamtrack_core.permissions import PermissionEvaluator


@pytest.fixture
def ledger(db, clock):
    return AssignmentLedger(db, clock=clock)


def _count(db, model):
    return db.query(model).count()


class TestAssignmentWindow:
    """Test date range validation."""

    def test_single_day_window_allowed(self):
        """Test that start and end may be the same day."""
        validate_assignment_window(date(2024, 3, 1), date(2024, 3, 1))

    def test_end_before_start_rejected(self):
        """Test that an inverted window is a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            validate_assignment_window(date(2024, 3, 10), date(2024, 3, 1))
        assert "end_date" in exc_info.value.details


class TestAssign:
    """Test creating assignments."""

    def test_inverted_window_writes_nothing(self, db, ledger, world):
        """Test that a rejected assignment adds no assignment and no activity."""
        assignments_before = _count(db, models.IssueAssignment)
        activities_before = _count(db, models.IssueActivity)

        with pytest.raises(ValidationError):
            ledger.assign(world.issue.id, world.member.id, date(2024, 3, 10), date(2024, 3, 1), world.manager.id)

        assert _count(db, models.IssueAssignment) == assignments_before
        assert _count(db, models.IssueActivity) == activities_before

    def test_assignment_and_activity_recorded(self, db, ledger, world):
        """Test that assigning writes an active assignment and an assigned activity."""
        assignment = ledger.assign(
            world.issue.id, world.member.id, date(2024, 1, 1), date(2024, 1, 31), world.manager.id
        )

        assert assignment.is_active is True
        assert assignment.assigned_by == world.manager.id

        activity = (
            db.query(models.IssueActivity)
            .filter(models.IssueActivity.activity_type == models.ActivityType.ASSIGNED)
            .one()
        )
        assert activity.description == "Issue assigned to Max Member"
        assert activity.created_at == assignment.assigned_at
        assert activity.activity_metadata["user_id"] == str(world.member.id)
        assert activity.activity_metadata["end_date"] == "2024-01-31"

    def test_multiple_assignees_stay_active(self, db, ledger, world):
        """Test that a second assignment does not deactivate the first."""
        first = ledger.assign(world.issue.id, world.member.id, date(2024, 1, 1), date(2024, 1, 31), world.manager.id)
        second = ledger.assign(world.issue.id, world.member2.id, date(2024, 1, 5), date(2024, 1, 20), world.manager.id)

        assert first.is_active is True
        assert second.is_active is True

        evaluator = PermissionEvaluator(db)
        assert evaluator.can_edit_issue(world.member.id, world.team.id, world.issue)
        assert evaluator.can_edit_issue(world.member2.id, world.team.id, world.issue)

    def test_unknown_issue_or_principal(self, ledger, world):
        """Test that missing references are not found."""
        with pytest.raises(NotFoundError):
            ledger.assign(uuid4(), world.member.id, date(2024, 1, 1), date(2024, 1, 2), world.manager.id)
        with pytest.raises(NotFoundError):
            ledger.assign(world.issue.id, uuid4(), date(2024, 1, 1), date(2024, 1, 2), world.manager.id)

    def test_missing_principal_reported_before_bad_window(self, ledger, world):
        """Test that existence is checked before the date range."""
        with pytest.raises(NotFoundError):
            ledger.assign(world.issue.id, uuid4(), date(2024, 3, 10), date(2024, 3, 1), world.manager.id)

    def test_assignee_from_other_org_not_found(self, ledger, world, other_org):
        """Test that an assignee outside the organization is rejected."""
        with pytest.raises(NotFoundError):
            ledger.assign(
                world.issue.id,
                other_org.user.id,
                date(2024, 1, 1),
                date(2024, 1, 2),
                world.manager.id,
                organization_id=world.org.id,
            )


class TestReads:
    """Test assignment queries."""

    def test_get_by_issue_most_recent_first(self, ledger, world):
        """Test ordering by assignment time."""
        first = ledger.assign(world.issue.id, world.member.id, date(2024, 1, 1), date(2024, 1, 31), world.manager.id)
        second = ledger.assign(world.issue.id, world.member2.id, date(2024, 1, 5), date(2024, 1, 20), world.manager.id)

        assert [a.id for a in ledger.get_by_issue(world.issue.id)] == [second.id, first.id]

    def test_active_by_principal_earliest_start_first(self, db, ledger, world, clock):
        """Test the caller's active assignments across issues."""
        other_issue = IssueLifecycle(db, clock=clock).create(
            schemas.IssueCreate(team_id=world.team.id, title="Rotate keys"),
            creator_id=world.manager.id,
        )
        later = ledger.assign(world.issue.id, world.member.id, date(2024, 2, 1), date(2024, 2, 28), world.manager.id)
        earlier = ledger.assign(other_issue.id, world.member.id, date(2024, 1, 1), date(2024, 1, 31), world.manager.id)

        assert [a.id for a in ledger.get_active_by_principal(world.member.id)] == [earlier.id, later.id]
        assert ledger.get_active_by_principal(world.member2.id) == []

    def test_deactivate_old_assignments(self, ledger, world):
        """Test that deactivation keeps rows but clears is_active."""
        ledger.assign(world.issue.id, world.member.id, date(2024, 1, 1), date(2024, 1, 31), world.manager.id)
        ledger.assign(world.issue.id, world.member2.id, date(2024, 1, 1), date(2024, 1, 31), world.manager.id)

        assert ledger.deactivate_old_assignments(world.issue.id) == 2
        assignments = ledger.get_by_issue(world.issue.id)
        assert len(assignments) == 2
        assert not any(a.is_active for a in assignments)
        assert ledger.get_active_by_principal(world.member.id) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
