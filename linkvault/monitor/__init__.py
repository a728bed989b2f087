"""Link health monitoring."""
