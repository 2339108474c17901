"""
Shared fixtures for adversarial tests.

Provides a clean database for race condition attack simulations.
"""

import pytest
from psycopg_pool import ConnectionPool


@pytest.fixture
def pool(clean_pg: ConnectionPool) -> ConnectionPool:
    """Pool over freshly emptied tables."""
    return clean_pg
