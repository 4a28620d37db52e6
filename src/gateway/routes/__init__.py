"""Gateway HTTP routes."""
