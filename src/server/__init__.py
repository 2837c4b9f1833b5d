"""HTTP endpoints and background scheduling."""
