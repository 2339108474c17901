"""Repository adapters - Database implementations."""

from .postgres import (
    PostgresRegistrationRepository,
    PostgresTokenRepository,
    PostgresUserRepository,
    run_migrations,
)

__all__ = [
    "PostgresRegistrationRepository",
    "PostgresTokenRepository",
    "PostgresUserRepository",
    "run_migrations",
]
