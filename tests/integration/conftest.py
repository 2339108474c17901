"""
Shared fixtures for integration tests.

Requires PostgreSQL (DATABASE_URL); every test here is skipped otherwise.
"""

import pytest
from psycopg_pool import ConnectionPool



@pytest.fixture
def pool(clean_pg: ConnectionPool) -> ConnectionPool:
    """Pool over freshly emptied tables."""
    return clean_pg
