"""Lookup and store operations for the collaborators of the lifecycle core.

Users, teams, memberships, statuses and issues are owned by other parts of
the platform. This module exposes the reads the core needs, with
organization scoping and soft-delete exclusion applied consistently.
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models
from .clock import Clock, utcnow
from .database import unit_of_work
from .exceptions import NotFoundError

logger = logging.getLogger("teamtrack-core.crud")


# ============================================================================
# User / principal directory
# ============================================================================

def get_user_by_id(
    db: Session,
    user_id: UUID,
    organization_id: Optional[UUID] = None,
) -> Optional[models.User]:
    """
    Get a user by ID.

    Args:
        db: Database session
        user_id: User UUID
        organization_id: If provided, the user must belong to this organization

    Returns:
        User instance or None if not found
    """
    query = db.query(models.User).filter(models.User.id == user_id)
    if organization_id is not None:
        query = query.filter(models.User.organization_id == organization_id)
    return query.first()


def require_user(
    db: Session,
    user_id: UUID,
    organization_id: Optional[UUID] = None,
) -> models.User:
    """Like get_user_by_id but raises NotFoundError."""
    user = get_user_by_id(db, user_id, organization_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


# ============================================================================
# Teams and memberships
# ============================================================================

def get_team(
    db: Session,
    team_id: UUID,
    organization_id: Optional[UUID] = None,
) -> Optional[models.Team]:
    """
    Get a team by ID, excluding deleted teams.

    Args:
        db: Database session
        team_id: Team UUID
        organization_id: If provided, the team must belong to this organization

    Returns:
        Team instance or None if not found
    """
    query = db.query(models.Team).filter(
        models.Team.id == team_id,
        models.Team.deleted_at.is_(None),
    )
    if organization_id is not None:
        query = query.filter(models.Team.organization_id == organization_id)
    return query.first()


def get_team_membership(
    db: Session,
    team_id: UUID,
    user_id: UUID,
) -> Optional[models.TeamMember]:
    """Get the (team, user) membership row, or None if the user is not a member."""
    return (
        db.query(models.TeamMember)
        .filter(
            models.TeamMember.team_id == team_id,
            models.TeamMember.user_id == user_id,
        )
        .first()
    )


def get_user_team_role(
    db: Session,
    team_id: UUID,
    user_id: UUID,
) -> Optional[models.TeamRole]:
    """
    Get user's role in a team.

    Returns:
        TeamRole enum or None if not a member
    """
    membership = get_team_membership(db, team_id, user_id)
    return membership.role if membership else None


# ============================================================================
# Statuses
# ============================================================================

def get_issue_status(
    db: Session,
    status_id: UUID,
    organization_id: Optional[UUID] = None,
) -> Optional[models.IssueStatus]:
    """Get a workflow status, optionally scoped to an organization."""
    query = db.query(models.IssueStatus).filter(models.IssueStatus.id == status_id)
    if organization_id is not None:
        query = query.filter(models.IssueStatus.organization_id == organization_id)
    return query.first()


def get_statuses_for_organization(
    db: Session,
    organization_id: UUID,
) -> list[models.IssueStatus]:
    """All workflow statuses of an organization in display order."""
    return (
        db.query(models.IssueStatus)
        .filter(models.IssueStatus.organization_id == organization_id)
        .order_by(models.IssueStatus.position, models.IssueStatus.name)
        .all()
    )


# ============================================================================
# Issues
# ============================================================================

def get_issue(
    db: Session,
    issue_id: UUID,
    organization_id: Optional[UUID] = None,
) -> Optional[models.Issue]:
    """
    Get an issue by ID, excluding soft-deleted issues.

    Args:
        db: Database session
        issue_id: Issue UUID
        organization_id: If provided, the issue's team must belong to this organization

    Returns:
        Issue instance or None if not found
    """
    query = db.query(models.Issue).filter(
        models.Issue.id == issue_id,
        models.Issue.deleted_at.is_(None),
    )
    if organization_id is not None:
        query = query.join(models.Team, models.Team.id == models.Issue.team_id).filter(
            models.Team.organization_id == organization_id
        )
    return query.first()


def require_issue(
    db: Session,
    issue_id: UUID,
    organization_id: Optional[UUID] = None,
) -> models.Issue:
    """Like get_issue but raises NotFoundError."""
    issue = get_issue(db, issue_id, organization_id)
    if not issue:
        raise NotFoundError("Issue", issue_id)
    return issue


def get_issues_by_team(
    db: Session,
    team_id: UUID,
    skip: int = 0,
    limit: int = 100,
) -> tuple[list[models.Issue], int]:
    """
    Get the live issues of a team, newest first.

    Returns:
        Tuple of (issues list, total count)
    """
    query = db.query(models.Issue).filter(
        models.Issue.team_id == team_id,
        models.Issue.deleted_at.is_(None),
    )
    total = query.count()
    issues = (
        query.order_by(models.Issue.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return issues, total


def soft_delete_issue(
    db: Session,
    issue_id: UUID,
    organization_id: Optional[UUID] = None,
    clock: Clock = utcnow,
) -> datetime:
    """
    Tombstone an issue. The row and its audit trail are kept.

    Returns:
        The deletion timestamp

    Raises:
        NotFoundError: If the issue does not exist or is already deleted
    """
    with unit_of_work(db, "delete issue"):
        issue = require_issue(db, issue_id, organization_id)
        issue.deleted_at = clock()
        deleted_at = issue.deleted_at
    logger.info(f"Soft-deleted issue {issue_id}")
    return deleted_at


def get_work_logs(db: Session, issue_id: UUID) -> list[models.IssueWorkLog]:
    """Work log entries of an issue, most recent work date first."""
    return (
        db.query(models.IssueWorkLog)
        .filter(models.IssueWorkLog.issue_id == issue_id)
        .order_by(models.IssueWorkLog.work_date.desc(), models.IssueWorkLog.created_at.desc())
        .all()
    )


def get_comments(db: Session, issue_id: UUID) -> list[models.IssueComment]:
    """Comments on an issue, oldest first."""
    return (
        db.query(models.IssueComment)
        .filter(models.IssueComment.issue_id == issue_id)
        .order_by(models.IssueComment.created_at.asc())
        .all()
    )


def get_comment(db: Session, issue_id: UUID, comment_id: UUID) -> Optional[models.IssueComment]:
    """Get a comment of a specific issue, or None."""
    return (
        db.query(models.IssueComment)
        .filter(
            models.IssueComment.id == comment_id,
            models.IssueComment.issue_id == issue_id,
        )
        .first()
    )
