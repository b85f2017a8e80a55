"""SQLAlchemy database models."""
from datetime import datetime
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    Enum,
    CheckConstraint,
    Boolean,
    UniqueConstraint,
    Uuid,
    JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class TeamRole(str, enum.Enum):
    """Team member role enum.

    Ordering is not encoded here; see roles.RoleHierarchy.
    """

    MANAGER = "manager"
    ASSISTANT = "assistant"
    MEMBER = "member"
    STAKEHOLDER = "stakeholder"


class IssuePriority(str, enum.Enum):
    """Issue priority enum."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ActivityType(str, enum.Enum):
    """Kinds of timeline entries appended to an issue."""

    CREATED = "created"
    ASSIGNED = "assigned"
    STATUS_CHANGED = "status_changed"
    PRIORITY_CHANGED = "priority_changed"
    COMMENTED = "commented"
    HOLD = "hold"
    RESUMED = "resumed"


class Organization(Base):
    """
    Organization model - the tenant boundary.

    Organization CRUD lives outside this service; the row is kept so that
    teams, users and statuses can be scoped to a tenant.
    """

    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    teams = relationship("Team", back_populates="organization")
    statuses = relationship("IssueStatus", back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization {self.slug}: {self.name}>"


class User(Base):
    """
    User model - an authenticated principal scoped to one organization.

    Identity is issued by the upstream auth gateway; profile management is
    handled elsewhere.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    memberships = relationship("TeamMember", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Team(Base):
    """
    Team model - scoped container of issues.

    Teams may nest through parent_team_id. The tree shape is maintained by
    convention; cycles are not checked here.
    """

    __tablename__ = "teams"

    id = Column(Uuid, primary_key=True, default=uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_team_id = Column(Uuid, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    organization = relationship("Organization", back_populates="teams")
    parent_team = relationship("Team", remote_side=[id], backref="sub_teams")
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    issues = relationship("Issue", back_populates="team")

    def __repr__(self) -> str:
        return f"<Team {self.name}>"


class TeamMember(Base):
    """
    Junction table linking users to teams with roles.

    At most one row per (team, user). Rows never expire on their own.
    """

    __tablename__ = "team_members"

    id = Column(Uuid, primary_key=True, default=uuid4)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        Enum(TeamRole, name="team_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=TeamRole.MEMBER,
        index=True,
    )
    joined_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    team = relationship("Team", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="unique_team_user"),
    )

    def __repr__(self) -> str:
        return f"<TeamMember {self.role.value}>"


class IssueStatus(Base):
    """
    Per-organization workflow state.

    Several statuses may be final at once; position only drives display order.
    """

    __tablename__ = "issue_statuses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False)
    is_final = Column(Boolean, nullable=False, default=False)
    color = Column(String(7), nullable=False, default="#6B7280")

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    organization = relationship("Organization", back_populates="statuses")

    def __repr__(self) -> str:
        return f"<IssueStatus {self.position}: {self.name}>"


class Issue(Base):
    """
    Issue model - the unit of trackable work.

    Carries a nullable workflow status and, independently, a hold flag derived
    from unresolved IssueHoldReason rows. Deletion sets deleted_at.
    """

    __tablename__ = "issues"

    id = Column(Uuid, primary_key=True, default=uuid4)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    status_id = Column(Uuid, ForeignKey("issue_statuses.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(500), nullable=False)
    description = Column(Text)
    priority = Column(
        Enum(IssuePriority, name="issue_priority", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=IssuePriority.NORMAL,
    )
    deadline = Column(Date, nullable=True)

    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    team = relationship("Team", back_populates="issues")
    status = relationship("IssueStatus")
    creator = relationship("User", foreign_keys=[created_by])
    assignments = relationship("IssueAssignment", back_populates="issue", cascade="all, delete-orphan")
    hold_reasons = relationship("IssueHoldReason", back_populates="issue", cascade="all, delete-orphan")
    activities = relationship("IssueActivity", back_populates="issue", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Issue {self.id}: {self.title[:30]}>"


class IssueStatusLog(Base):
    """Append-only record of a workflow status transition."""

    __tablename__ = "issue_status_logs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status_id = Column(Uuid, ForeignKey("issue_statuses.id", ondelete="SET NULL"), nullable=True)
    to_status_id = Column(Uuid, ForeignKey("issue_statuses.id", ondelete="SET NULL"), nullable=True)
    changed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<IssueStatusLog {self.issue_id}: {self.from_status_id} -> {self.to_status_id}>"


class IssueHoldReason(Base):
    """
    A hold placed on an issue.

    resolved_at is written by Resume only and never cleared afterwards.
    """

    __tablename__ = "issue_hold_reasons"

    id = Column(Uuid, primary_key=True, default=uuid4)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True, index=True)
    resolved_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    issue = relationship("Issue", back_populates="hold_reasons")

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def __repr__(self) -> str:
        return f"<IssueHoldReason {self.issue_id}: {'resolved' if self.is_resolved else 'open'}>"


class IssueActivity(Base):
    """Generic append-only timeline entry for an issue."""

    __tablename__ = "issue_activities"

    id = Column(Uuid, primary_key=True, default=uuid4)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    activity_type = Column(
        Enum(ActivityType, name="activity_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True,
    )
    description = Column(Text, nullable=False, default="")
    # "metadata" is reserved on declarative classes
    activity_metadata = Column("metadata", JSONType, nullable=True, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    issue = relationship("Issue", back_populates="activities")
    user = relationship("User")

    def __repr__(self) -> str:
        return f"<IssueActivity {self.issue_id}: {self.activity_type.value} at {self.created_at}>"


class IssueAssignment(Base):
    """
    Assignment window: a principal tasked on an issue for a date range.

    Several assignments of one issue may be active at the same time.
    """

    __tablename__ = "issue_assignments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    assigned_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    assigned_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    issue = relationship("Issue", back_populates="assignments")
    user = relationship("User", foreign_keys=[user_id])
    assigned_by_user = relationship("User", foreign_keys=[assigned_by])

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="valid_assignment_window"),
    )

    def __repr__(self) -> str:
        return f"<IssueAssignment {self.issue_id} -> {self.user_id} ({self.start_date}..{self.end_date})>"


class IssueWorkLog(Base):
    """Time spent on an issue on a given day. Pure append."""

    __tablename__ = "issue_work_logs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    work_date = Column(Date, nullable=False)
    minutes_spent = Column(Integer, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("minutes_spent > 0", name="positive_minutes_spent"),
    )

    def __repr__(self) -> str:
        return f"<IssueWorkLog {self.issue_id}: {self.minutes_spent}m on {self.work_date}>"


class IssueComment(Base):
    """Comment left on an issue."""

    __tablename__ = "issue_comments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    issue_id = Column(Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User")

    def __repr__(self) -> str:
        return f"<IssueComment {self.issue_id} by {self.user_id}>"
