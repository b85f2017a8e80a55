"""Pydantic schemas for request/response validation."""
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, model_validator

from .models import ActivityType, IssuePriority


# Issue Schemas

class IssueCreate(BaseModel):
    """Schema for creating an issue. New issues start without a status."""

    team_id: UUID
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    priority: IssuePriority = IssuePriority.NORMAL
    deadline: Optional[date] = None


class IssueUpdate(BaseModel):
    """Schema for updating issue fields (status and holds have their own endpoints)."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    priority: Optional[IssuePriority] = None
    deadline: Optional[date] = None


class IssueStatusSummary(BaseModel):
    """Compact status embedded in issue responses."""

    id: UUID
    name: str
    position: int
    is_final: bool
    color: str

    model_config = ConfigDict(from_attributes=True)


class IssueResponse(BaseModel):
    """Schema for issue response."""

    id: UUID
    team_id: UUID
    status_id: Optional[UUID] = None
    status: Optional[IssueStatusSummary] = None
    title: str
    description: Optional[str] = None
    priority: IssuePriority
    deadline: Optional[date] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class IssueListResponse(BaseModel):
    """Schema for paginated issue list."""

    items: list[IssueResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class IssueStateResponse(BaseModel):
    """Workflow status and hold flag of an issue, reported side by side."""

    issue_id: UUID
    status_id: Optional[UUID] = None
    is_final: bool
    on_hold: bool
    open_holds: int


# Lifecycle Schemas

class StatusChangeRequest(BaseModel):
    """Schema for moving an issue to another workflow status."""

    status_id: UUID = Field(..., description="Target status")


class StatusTransitionResponse(BaseModel):
    """Schema for a recorded status transition."""

    id: UUID
    issue_id: UUID
    from_status_id: Optional[UUID] = None
    to_status_id: Optional[UUID] = None
    changed_by: Optional[UUID] = None
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HoldRequest(BaseModel):
    """Schema for putting an issue on hold."""

    reason: str = Field(..., min_length=1, description="Why the issue is blocked")


class HoldResponse(BaseModel):
    """Schema for a hold record."""

    id: UUID
    issue_id: UUID
    reason: str
    created_by: Optional[UUID] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


class ResumeResponse(BaseModel):
    """Schema for the outcome of a resume call."""

    issue_id: UUID
    resolved_holds: int


class ActivityResponse(BaseModel):
    """Schema for an activity timeline entry."""

    id: UUID
    issue_id: UUID
    user_id: Optional[UUID] = None
    activity_type: ActivityType
    description: str
    metadata: Optional[dict] = Field(None, validation_alias="activity_metadata")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# Assignment Schemas

class AssignmentRequest(BaseModel):
    """Schema for assigning a user to an issue for a date window."""

    user_id: UUID
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_window(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class AssignmentResponse(BaseModel):
    """Schema for an assignment window."""

    id: UUID
    issue_id: UUID
    user_id: UUID
    start_date: date
    end_date: date
    assigned_at: datetime
    assigned_by: Optional[UUID] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


# Work Log Schemas

class WorkLogCreate(BaseModel):
    """Schema for logging time on an issue."""

    work_date: date
    minutes_spent: int = Field(..., gt=0)
    notes: Optional[str] = None


class WorkLogResponse(BaseModel):
    """Schema for a work log entry."""

    id: UUID
    issue_id: UUID
    user_id: UUID
    work_date: date
    minutes_spent: int
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Comment Schemas

class CommentCreate(BaseModel):
    """Schema for commenting on an issue."""

    content: str = Field(..., min_length=1)


class CommentUpdate(BaseModel):
    """Schema for editing your own comment."""

    content: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    """Schema for an issue comment."""

    id: UUID
    issue_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Status Schemas

class IssueStatusResponse(IssueStatusSummary):
    """Schema for an organization's workflow status."""

    organization_id: UUID
    created_at: datetime
