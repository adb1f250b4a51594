"""
Shared fixtures.

Note on mocking asyncpg:
- pool.acquire() returns an async context manager
- We need to mock both the pool and the connection it returns
- The transaction() method also returns an async context manager
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def mock_connection():
    """Create a mock asyncpg connection with transaction support."""
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=1)
    conn.fetch = AsyncMock(return_value=[])
    conn.execute = AsyncMock()

    @asynccontextmanager
    async def mock_transaction():
        yield

    conn.transaction = mock_transaction
    return conn


@pytest.fixture
def mock_pool(mock_connection):
    """Create a mock asyncpg pool with acquire() context manager."""
    pool = MagicMock()
    # Number of connections currently checked out
    pool.in_use = 0

    @asynccontextmanager
    async def mock_acquire():
        pool.in_use += 1
        try:
            yield mock_connection
        finally:
            pool.in_use -= 1

    pool.acquire = mock_acquire
    return pool


@pytest.fixture
def mock_get_pool(mock_pool):
    """Async replacement for get_db_pool() returning mock_pool."""

    async def get_pool():
        return mock_pool

    return get_pool


@pytest.fixture
def classifier():
    """A classification service whose classify() is an AsyncMock."""
    service = MagicMock()
    service.classify = AsyncMock()
    return service
