"""TeamTrack Core: issue lifecycle, team permissions, assignments and audit trail."""

__version__ = "1.0.0"
