"""SQLAlchemy Core access to cache.db."""
