"""In-memory asset state."""
