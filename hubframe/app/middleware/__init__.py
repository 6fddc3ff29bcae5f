"""Flask request hooks."""
