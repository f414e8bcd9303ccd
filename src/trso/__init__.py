"""trso: apply SQL migration files to SQLite and libSQL databases."""

__version__ = "0.1.0"
