"""Performance reporting."""
