"""Comic archive conversion packages."""
