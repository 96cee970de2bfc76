"""Database-backed store adapters."""
