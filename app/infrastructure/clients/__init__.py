"""API clients for external services."""
