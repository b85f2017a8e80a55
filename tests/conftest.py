"""
Shared pytest fixtures for the TeamTrack Core test suite.

Provides:
    - engine / db: Fresh in-memory SQLite database per test
    - clock: Deterministic clock advancing one second per reading
    - world: Seeded organization, team, members by role, statuses and an issue
    - other_org: A second tenant with its own team, user and status
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from teamtrack_core import models, schemas
from teamtrack_core.issue_lifecycle import IssueLifecycle


class FakeClock:
    """Returns a strictly increasing timestamp on every call."""

    def __init__(self, start=datetime(2024, 3, 1, 9, 0, 0), step=timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + self.step
        return now


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across connections of one test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=test_engine)
    yield test_engine
    models.Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Database session for one test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


def _add_user(db, org, email, full_name):
    user = models.User(organization_id=org.id, email=email, full_name=full_name)
    db.add(user)
    return user


@pytest.fixture
def world(db, clock):
    """
    One organization with a team and a member of every role.

    Statuses: "todo" (position 1), "in-progress" (2), "done" (3, final).
    The issue is created through IssueLifecycle by the manager, so it starts
    with status None and one ``created`` activity.
    """
    org = models.Organization(name="Acme", slug="acme")
    db.add(org)
    db.flush()

    manager = _add_user(db, org, "manager@acme.test", "Mia Manager")
    assistant = _add_user(db, org, "assistant@acme.test", "Ari Assistant")
    member = _add_user(db, org, "member@acme.test", "Max Member")
    member2 = _add_user(db, org, "member2@acme.test", "Mo Member")
    stakeholder = _add_user(db, org, "stakeholder@acme.test", "Sam Stakeholder")
    outsider = _add_user(db, org, "outsider@acme.test", "Olly Outsider")
    db.flush()

    team = models.Team(organization_id=org.id, name="Platform")
    db.add(team)
    db.flush()

    for user, role in [
        (manager, models.TeamRole.MANAGER),
        (assistant, models.TeamRole.ASSISTANT),
        (member, models.TeamRole.MEMBER),
        (member2, models.TeamRole.MEMBER),
        (stakeholder, models.TeamRole.STAKEHOLDER),
    ]:
        db.add(models.TeamMember(team_id=team.id, user_id=user.id, role=role))

    todo = models.IssueStatus(organization_id=org.id, name="todo", position=1)
    in_progress = models.IssueStatus(organization_id=org.id, name="in-progress", position=2)
    done = models.IssueStatus(organization_id=org.id, name="done", position=3, is_final=True)
    db.add_all([todo, in_progress, done])
    db.commit()

    issue = IssueLifecycle(db, clock=clock).create(
        schemas.IssueCreate(team_id=team.id, title="Fix login redirect"),
        creator_id=manager.id,
        organization_id=org.id,
    )

    return SimpleNamespace(
        org=org,
        team=team,
        manager=manager,
        assistant=assistant,
        member=member,
        member2=member2,
        stakeholder=stakeholder,
        outsider=outsider,
        todo=todo,
        in_progress=in_progress,
        done=done,
        issue=issue,
    )


@pytest.fixture
def other_org(db):
    """A second tenant. Nothing in it is visible to ``world``."""
    org = models.Organization(name="Globex", slug="globex")
    db.add(org)
    db.flush()

    user = _add_user(db, org, "lead@globex.test", "Gil Globex")
    team = models.Team(organization_id=org.id, name="Ops")
    db.add(team)
    db.flush()
    db.add(models.TeamMember(team_id=team.id, user_id=user.id, role=models.TeamRole.MANAGER))

    status = models.IssueStatus(organization_id=org.id, name="in-progress", position=1)
    db.add(status)
    db.commit()

    return SimpleNamespace(org=org, user=user, team=team, status=status)
