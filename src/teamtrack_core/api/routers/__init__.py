"""API routers for TeamTrack Core."""

from . import assignments, issues, statuses

__all__ = ["assignments", "issues", "statuses"]
