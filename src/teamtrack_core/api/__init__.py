"""HTTP boundary for TeamTrack Core."""
