"""Infrastructure adapters (Redis, PostgreSQL)."""
