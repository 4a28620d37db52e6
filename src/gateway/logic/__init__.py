"""Gateway business logic."""
