"""Database module for the CRE news pipeline."""

from crenews.db.connection import close_db_pool, get_db_pool

__all__ = ["get_db_pool", "close_db_pool"]
