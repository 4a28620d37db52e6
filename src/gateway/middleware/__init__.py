"""Gateway middleware."""
