"""Domain exception hierarchy for TeamTrack Core.

Services raise these types; the HTTP layer registers one handler per type
and maps them to status codes:

- NotFoundError     -> 404
- UnauthorizedError -> 401
- ForbiddenError    -> 403
- ValidationError   -> 422
- ConflictError     -> 409 (reserved, not raised by the core today)
- InternalError     -> 500 (message is opaque; details go to the logs only)
"""
from typing import Optional, Union
from uuid import UUID


class TeamtrackError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500


class NotFoundError(TeamtrackError):
    """Raised when an issue, principal, team or status reference is missing.

    Also used when the record exists but belongs to another organization, so
    callers cannot discover foreign ids.

    Args:
        resource: Human-readable entity name (e.g. "Issue", "User").
        resource_id: The id that was looked up.
    """

    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[Union[UUID, str]] = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource} not found"
        if resource_id is not None:
            msg = f"{resource} not found: {resource_id}"
        super().__init__(msg)


class UnauthorizedError(TeamtrackError):
    """Raised by the boundary when no valid authenticated principal is present."""

    status_code = 401

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


class ForbiddenError(TeamtrackError):
    """Raised when the permission evaluator denies a capability."""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class ValidationError(TeamtrackError):
    """Raised when input is malformed (bad date range, missing required field).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown.
    """

    status_code = 422

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(TeamtrackError):
    """Reserved for concurrent-modification conflicts."""

    status_code = 409


class InternalError(TeamtrackError):
    """Raised when persistence or infrastructure fails."""

    status_code = 500

    def __init__(self, message: str = "Internal error") -> None:
        super().__init__(message)
