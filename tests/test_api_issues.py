"""Tests for the HTTP boundary: authentication, permission gates and error mapping."""
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from teamtrack_core import models
from teamtrack_core.api.dependencies import get_clock
from teamtrack_core.api.main import app
from teamtrack_core.audit import AuditTrailRecorder
from teamtrack_core.database import get_db

ISSUES = "/api/v1/issues"


@pytest.fixture
def client(db, clock):
    """TestClient bound to the test session and clock."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(user, org_id=None):
    return {
        "X-Principal-Id": str(user.id),
        "X-Organization-Id": str(org_id or user.organization_id),
    }


def _issue_url(world, suffix=""):
    return f"{ISSUES}/{world.issue.id}{suffix}"


class TestServiceEndpoints:
    """Test root and health endpoints."""

    def test_health(self, client):
        """Test health check."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_root(self, client):
        """Test server info."""
        assert client.get("/").json()["name"] == "TeamTrack Core API"


class TestAuthentication:
    """Test principal resolution from gateway headers."""

    def test_missing_headers(self, client, world):
        """Test that a request without a principal is rejected."""
        response = client.get(_issue_url(world))
        assert response.status_code == 401

    def test_malformed_principal(self, client, world):
        """Test that a non-UUID principal is rejected."""
        response = client.get(
            _issue_url(world),
            headers={"X-Principal-Id": "not-a-uuid", "X-Organization-Id": str(world.org.id)},
        )
        assert response.status_code == 401

    def test_unknown_principal(self, client, world):
        """Test that an unknown user is rejected."""
        response = client.get(
            _issue_url(world),
            headers={"X-Principal-Id": str(uuid4()), "X-Organization-Id": str(world.org.id)},
        )
        assert response.status_code == 401

    def test_principal_outside_claimed_org(self, client, world, other_org):
        """Test that a user cannot claim another organization."""
        response = client.get(_issue_url(world), headers=_headers(other_org.user, world.org.id))
        assert response.status_code == 401

    def test_inactive_principal(self, client, db, world):
        """Test that deactivated users are rejected."""
        world.member.is_active = False
        db.commit()
        response = client.get(_issue_url(world), headers=_headers(world.member))
        assert response.status_code == 401

    def test_unauthenticated_mutation_writes_nothing(self, client, db, world):
        """Test that authentication short-circuits before any write."""
        before = db.query(models.IssueHoldReason).count()
        response = client.post(_issue_url(world, "/hold"), json={"reason": "r1"})
        assert response.status_code == 401
        assert db.query(models.IssueHoldReason).count() == before


class TestIssueCrud:
    """Test issue CRUD endpoints."""

    def test_member_creates_issue(self, client, world):
        """Test that members can create issues; they start without a status."""
        response = client.post(
            f"{ISSUES}/",
            json={"team_id": str(world.team.id), "title": "Add audit export", "priority": "HIGH"},
            headers=_headers(world.member),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status_id"] is None
        assert body["priority"] == "HIGH"
        assert body["created_by"] == str(world.member.id)

    def test_stakeholder_cannot_create(self, client, world):
        """Test that stakeholders are below the member requirement."""
        response = client.post(
            f"{ISSUES}/",
            json={"team_id": str(world.team.id), "title": "Nope"},
            headers=_headers(world.stakeholder),
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Requires one of these team roles: member, assistant, manager"

    def test_non_member_cannot_create(self, client, world):
        """Test that users without membership are forbidden."""
        response = client.post(
            f"{ISSUES}/",
            json={"team_id": str(world.team.id), "title": "Nope"},
            headers=_headers(world.outsider),
        )
        assert response.status_code == 403

    def test_missing_title_is_validation_error(self, client, world):
        """Test request validation."""
        response = client.post(
            f"{ISSUES}/",
            json={"team_id": str(world.team.id)},
            headers=_headers(world.member),
        )
        assert response.status_code == 422

    def test_list_issues(self, client, world):
        """Test listing a team's issues as a stakeholder."""
        response = client.get(f"{ISSUES}/", params={"team_id": str(world.team.id)}, headers=_headers(world.stakeholder))
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["id"] == str(world.issue.id)
        assert body["total_pages"] == 1

    def test_update_priority(self, client, world):
        """Test that editors can change priority."""
        response = client.put(_issue_url(world), json={"priority": "URGENT"}, headers=_headers(world.assistant))
        assert response.status_code == 200
        assert response.json()["priority"] == "URGENT"

    def test_delete_requires_assistant(self, client, world):
        """Test soft delete gate and visibility afterwards."""
        response = client.delete(_issue_url(world), headers=_headers(world.member))
        assert response.status_code == 403
        assert response.json()["detail"] == "Requires one of these team roles: assistant, manager"

        response = client.delete(_issue_url(world), headers=_headers(world.assistant))
        assert response.status_code == 204

        response = client.get(_issue_url(world), headers=_headers(world.manager))
        assert response.status_code == 404

    def test_issue_of_other_org_not_found(self, client, world, other_org):
        """Test that foreign issues look missing, not forbidden."""
        response = client.get(_issue_url(world), headers=_headers(other_org.user))
        assert response.status_code == 404


class TestLifecycleEndpoints:
    """Test status, hold and resume endpoints."""

    def test_status_change_by_manager(self, client, world):
        """Test a status change and the resulting state."""
        response = client.post(
            _issue_url(world, "/status"),
            json={"status_id": str(world.done.id)},
            headers=_headers(world.manager),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["from_status_id"] is None
        assert body["to_status_id"] == str(world.done.id)

        state = client.get(_issue_url(world, "/state"), headers=_headers(world.stakeholder)).json()
        assert state["status_id"] == str(world.done.id)
        assert state["is_final"] is True
        assert state["on_hold"] is False

    def test_member_needs_assignment_to_change_status(self, client, world):
        """Test that members are forbidden until assigned."""
        payload = {"status_id": str(world.in_progress.id)}
        response = client.post(_issue_url(world, "/status"), json=payload, headers=_headers(world.member))
        assert response.status_code == 403

        response = client.post(
            _issue_url(world, "/assign"),
            json={"user_id": str(world.member.id), "start_date": "2024-01-01", "end_date": "2024-01-31"},
            headers=_headers(world.assistant),
        )
        assert response.status_code == 201

        response = client.post(_issue_url(world, "/status"), json=payload, headers=_headers(world.member))
        assert response.status_code == 200

    def test_stakeholder_cannot_hold(self, client, db, world):
        """Test that stakeholders cannot edit and nothing is written."""
        response = client.post(_issue_url(world, "/hold"), json={"reason": "r1"}, headers=_headers(world.stakeholder))
        assert response.status_code == 403
        assert AuditTrailRecorder(db).list_holds(world.issue.id) == []

    def test_unknown_status_not_found(self, client, world, other_org):
        """Test that a status from another organization is not found."""
        response = client.post(
            _issue_url(world, "/status"),
            json={"status_id": str(other_org.status.id)},
            headers=_headers(world.manager),
        )
        assert response.status_code == 404

    def test_hold_and_resume(self, client, world):
        """Test stacked holds, a resume, and an idempotent second resume."""
        headers = _headers(world.assistant)
        assert client.post(_issue_url(world, "/hold"), json={"reason": "r1"}, headers=headers).status_code == 201
        assert client.post(_issue_url(world, "/hold"), json={"reason": "r2"}, headers=headers).status_code == 201

        state = client.get(_issue_url(world, "/state"), headers=headers).json()
        assert state["on_hold"] is True
        assert state["open_holds"] == 2

        response = client.post(_issue_url(world, "/resume"), headers=headers)
        assert response.status_code == 200
        assert response.json()["resolved_holds"] == 2

        response = client.post(_issue_url(world, "/resume"), headers=headers)
        assert response.json()["resolved_holds"] == 0

        activities = client.get(_issue_url(world, "/activities"), headers=_headers(world.stakeholder)).json()
        assert [a["activity_type"] for a in activities] == ["resumed", "hold", "hold", "created"]
        assert activities[0]["metadata"] == {"resolved_holds": 2}

    def test_empty_hold_reason_rejected(self, client, world):
        """Test hold request validation."""
        response = client.post(_issue_url(world, "/hold"), json={"reason": ""}, headers=_headers(world.manager))
        assert response.status_code == 422

    def test_persistence_failure_is_opaque(self, client, world, monkeypatch):
        """Test that storage errors map to 500 without leaking details."""
        def fail(self, *args, **kwargs):
            raise OperationalError("INSERT INTO issue_activities", {}, Exception("disk I/O error"))

        monkeypatch.setattr(AuditTrailRecorder, "record_activity", fail)

        response = client.post(_issue_url(world, "/hold"), json={"reason": "r1"}, headers=_headers(world.manager))
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}


class TestAssignmentEndpoints:
    """Test assignment endpoints."""

    def test_member_cannot_assign(self, client, world):
        """Test the assistant requirement."""
        response = client.post(
            _issue_url(world, "/assign"),
            json={"user_id": str(world.member.id), "start_date": "2024-01-01", "end_date": "2024-01-31"},
            headers=_headers(world.member),
        )
        assert response.status_code == 403

    def test_inverted_window_rejected(self, client, db, world):
        """Test that an end date before the start date is a validation error."""
        response = client.post(
            _issue_url(world, "/assign"),
            json={"user_id": str(world.member.id), "start_date": "2024-03-10", "end_date": "2024-03-01"},
            headers=_headers(world.manager),
        )
        assert response.status_code == 422
        assert db.query(models.IssueAssignment).count() == 0

    def test_assign_unknown_user(self, client, world):
        """Test that an unknown assignee is not found."""
        response = client.post(
            _issue_url(world, "/assign"),
            json={"user_id": str(uuid4()), "start_date": "2024-01-01", "end_date": "2024-01-31"},
            headers=_headers(world.manager),
        )
        assert response.status_code == 404

    def test_list_assignments_and_mine(self, client, world):
        """Test listing an issue's assignments and the caller's own."""
        for user in (world.member, world.member2):
            response = client.post(
                _issue_url(world, "/assign"),
                json={"user_id": str(user.id), "start_date": "2024-01-01", "end_date": "2024-01-31"},
                headers=_headers(world.manager),
            )
            assert response.status_code == 201

        assignments = client.get(_issue_url(world, "/assignments"), headers=_headers(world.stakeholder)).json()
        assert len(assignments) == 2
        assert all(a["is_active"] for a in assignments)

        mine = client.get("/api/v1/assignments/me", headers=_headers(world.member)).json()
        assert [a["user_id"] for a in mine] == [str(world.member.id)]


class TestWorkLogAndComments:
    """Test work log and comment endpoints."""

    def test_work_log(self, client, world):
        """Test logging time as an editor and listing it."""
        response = client.post(
            _issue_url(world, "/worklog"),
            json={"work_date": "2024-03-01", "minutes_spent": 45},
            headers=_headers(world.manager),
        )
        assert response.status_code == 201

        entries = client.get(_issue_url(world, "/worklog"), headers=_headers(world.stakeholder)).json()
        assert [e["minutes_spent"] for e in entries] == [45]

        activities = client.get(_issue_url(world, "/activities"), headers=_headers(world.manager)).json()
        assert [a["activity_type"] for a in activities] == ["created"]

    def test_zero_minutes_rejected(self, client, world):
        """Test that minutes must be positive."""
        response = client.post(
            _issue_url(world, "/worklog"),
            json={"work_date": "2024-03-01", "minutes_spent": 0},
            headers=_headers(world.manager),
        )
        assert response.status_code == 422

    def test_comments(self, client, world):
        """Test comment gate and listing."""
        payload = {"content": "Looks like a caching issue"}
        assert client.post(_issue_url(world, "/comments"), json=payload,
                           headers=_headers(world.stakeholder)).status_code == 403
        assert client.post(_issue_url(world, "/comments"), json=payload,
                           headers=_headers(world.member)).status_code == 201

        comments = client.get(_issue_url(world, "/comments"), headers=_headers(world.stakeholder)).json()
        assert [c["content"] for c in comments] == [payload["content"]]

    def test_author_edits_and_deletes_comment(self, client, world):
        """Test that the author can edit then delete their comment."""
        created = client.post(_issue_url(world, "/comments"), json={"content": "first draft"},
                              headers=_headers(world.member)).json()
        url = _issue_url(world, f"/comments/{created['id']}")

        response = client.put(url, json={"content": "second draft"}, headers=_headers(world.member))
        assert response.status_code == 200
        assert response.json()["content"] == "second draft"
        assert response.json()["updated_at"] > created["updated_at"]

        response = client.delete(url, headers=_headers(world.member))
        assert response.status_code == 204
        assert client.get(_issue_url(world, "/comments"), headers=_headers(world.member)).json() == []

        activities = client.get(_issue_url(world, "/activities"), headers=_headers(world.member)).json()
        assert "commented" in [a["activity_type"] for a in activities]

    def test_only_author_may_change_comment(self, client, world):
        """Test that other users, managers included, get 403 and the comment is untouched."""
        created = client.post(_issue_url(world, "/comments"), json={"content": "mine"},
                              headers=_headers(world.member)).json()
        url = _issue_url(world, f"/comments/{created['id']}")

        for user in (world.member2, world.manager):
            response = client.put(url, json={"content": "theirs"}, headers=_headers(user))
            assert response.status_code == 403
            assert response.json()["detail"] == "You can only edit your own comments"
            assert client.delete(url, headers=_headers(user)).status_code == 403

        comments = client.get(_issue_url(world, "/comments"), headers=_headers(world.member)).json()
        assert [c["content"] for c in comments] == ["mine"]

    def test_missing_comment_not_found(self, client, world):
        """Test that an unknown comment id reports 404."""
        url = _issue_url(world, f"/comments/{uuid4()}")
        assert client.put(url, json={"content": "x"}, headers=_headers(world.member)).status_code == 404
        assert client.delete(url, headers=_headers(world.member)).status_code == 404

    def test_blank_comment_edit_rejected(self, client, world):
        """Test that an edit needs content."""
        created = client.post(_issue_url(world, "/comments"), json={"content": "mine"},
                              headers=_headers(world.member)).json()
        response = client.put(_issue_url(world, f"/comments/{created['id']}"), json={"content": ""},
                              headers=_headers(world.member))
        assert response.status_code == 422


class TestStatuses:
    """Test the status listing."""

    def test_statuses_scoped_to_org(self, client, world, other_org):
        """Test that only the caller's organization statuses are listed, in order."""
        statuses = client.get("/api/v1/statuses/", headers=_headers(world.stakeholder)).json()
        assert [s["name"] for s in statuses] == ["todo", "in-progress", "done"]
        assert [s["is_final"] for s in statuses] == [False, False, True]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
