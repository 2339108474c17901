"""
PostgreSQL repository adapters - Implement the domain's repository protocols.

This module provides the PostgreSQL implementations of the user,
registration and token ports using psycopg3 with raw SQL.

Consistency Design:
-------------------
1. **upsert_otp** uses INSERT ... ON CONFLICT (email) DO UPDATE, so a
   repeated code request atomically replaces the previous record.

2. **complete_registration** runs DELETE record -> INSERT user -> INSERT
   token inside one ``conn.transaction()``. The DELETE takes the row lock,
   so a concurrent completion for the same email waits, then finds no
   record and observes the committed user.

3. **users.email UNIQUE** is the final arbiter. A UniqueViolation raised by
   the INSERT rolls the whole transaction back and is reported as
   EmailAlreadyUsed.
"""

import logging
from datetime import datetime
from pathlib import Path

import psycopg
from psycopg import errors
from psycopg_pool import ConnectionPool

from pinauth.domain.exceptions import (
    EmailAlreadyUsed,
    IncompleteRegistrationData,
    RegistrationFailed,
)
from pinauth.domain.ports import OtpRegistration, User

logger = logging.getLogger(__name__)

_USER_COLUMNS = "id, name, email, pin_code, email_verified_at"


def _user_from_row(row: tuple) -> User:
    return User(
        id=row[0],
        name=row[1],
        email=row[2],
        pin_code=row[3],
        email_verified_at=row[4],
    )


class PostgresUserRepository:
    """
    Implements UserRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def get_by_email(self, email: str) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()
        return _user_from_row(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (user_id,))
            row = cursor.fetchone()
        return _user_from_row(row) if row is not None else None

    def email_exists(self, email: str) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM users WHERE email = %s", (email,))
            return cursor.fetchone() is not None


class PostgresRegistrationRepository:
    """
    Implements RegistrationRepository protocol via psycopg3.

    All SQL uses parameterized queries. Only hashes are written; the
    plaintext code never reaches this layer.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def upsert_otp(self, email: str, otp_hash: str, expires_at: datetime) -> None:
        """
        Create or replace the registration record for an email.

        A new request restarts the flow: verification and name are reset.
        """
        sql = """
            INSERT INTO otp_registrations (email, otp_code, expires_at, is_verified, name)
            VALUES (%s, %s, %s, FALSE, NULL)
            ON CONFLICT (email) DO UPDATE
            SET otp_code = EXCLUDED.otp_code,
                expires_at = EXCLUDED.expires_at,
                is_verified = FALSE,
                name = NULL,
                updated_at = NOW()
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email, otp_hash, expires_at))
            conn.commit()

    def get_otp(self, email: str) -> OtpRegistration | None:
        sql = """
            SELECT email, otp_code, expires_at, is_verified, name
            FROM otp_registrations
            WHERE email = %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()

        if row is None:
            return None
        return OtpRegistration(
            email=row[0],
            otp_code=row[1],
            expires_at=row[2],
            is_verified=row[3],
            name=row[4],
        )

    def delete_otp(self, email: str) -> None:
        with self._pool.connection() as conn:
            conn.execute("DELETE FROM otp_registrations WHERE email = %s", (email,))
            conn.commit()

    def mark_verified(self, email: str, otp_hash: str, expires_at: datetime) -> bool:
        sql = """
            UPDATE otp_registrations
            SET is_verified = TRUE, expires_at = %s, updated_at = NOW()
            WHERE email = %s AND otp_code = %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (expires_at, email, otp_hash))
            conn.commit()
            return cursor.rowcount == 1

    def set_name(self, email: str, name: str) -> bool:
        sql = """
            UPDATE otp_registrations
            SET name = %s, updated_at = NOW()
            WHERE email = %s AND is_verified = TRUE
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (name, email))
            conn.commit()
            return cursor.rowcount == 1

    def complete_registration(
        self,
        email: str,
        pin_hash: str,
        verified_at: datetime,
        token_name: str,
        token_hash: str,
    ) -> tuple[User, int]:
        """
        Create the user, delete the record and issue a token atomically.

        Args:
            email: Normalized email address
            pin_hash: bcrypt hash of the PIN
            verified_at: Timestamp stored as email_verified_at
            token_name: Label stored with the access token
            token_hash: SHA-256 digest of the token secret

        Returns:
            The created user and the access token id
        """
        claim_sql = """
            DELETE FROM otp_registrations
            WHERE email = %s AND is_verified = TRUE AND COALESCE(name, '') <> ''
            RETURNING name
        """
        user_sql = f"""
            INSERT INTO users (name, email, pin_code, email_verified_at)
            VALUES (%s, %s, %s, %s)
            RETURNING {_USER_COLUMNS}
        """
        token_sql = """
            INSERT INTO access_tokens (user_id, name, token_hash)
            VALUES (%s, %s, %s)
            RETURNING id
        """

        try:
            with self._pool.connection() as conn:
                with conn.transaction(), conn.cursor() as cursor:
                    cursor.execute(claim_sql, (email,))
                    claimed = cursor.fetchone()
                    if claimed is None:
                        # Lost the row lock to a concurrent completion, or never ready
                        cursor.execute("SELECT 1 FROM users WHERE email = %s", (email,))
                        if cursor.fetchone() is not None:
                            raise EmailAlreadyUsed(email)
                        raise IncompleteRegistrationData(email)

                    cursor.execute(user_sql, (claimed[0], email, pin_hash, verified_at))
                    user = _user_from_row(cursor.fetchone())

                    cursor.execute(token_sql, (user.id, token_name, token_hash))
                    token_id = cursor.fetchone()[0]
        except errors.UniqueViolation as e:
            logger.info("Concurrent registration for %s lost to unique constraint", email)
            raise EmailAlreadyUsed(email) from e
        except psycopg.Error as e:
            logger.error("Registration transaction rolled back for %s: %s", email, e)
            raise RegistrationFailed(email) from e

        return user, token_id


class PostgresTokenRepository:
    """Implements TokenRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create_token(self, user_id: int, name: str, token_hash: str) -> int:
        sql = """
            INSERT INTO access_tokens (user_id, name, token_hash)
            VALUES (%s, %s, %s)
            RETURNING id
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (user_id, name, token_hash))
            token_id = cursor.fetchone()[0]
            conn.commit()
        return token_id

    def find_token(self, token_id: int) -> tuple[int, str] | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT user_id, token_hash FROM access_tokens WHERE id = %s",
                (token_id,),
            )
            row = cursor.fetchone()
        return (row[0], row[1]) if row is not None else None

    def touch_token(self, token_id: int) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                "UPDATE access_tokens SET last_used_at = NOW() WHERE id = %s",
                (token_id,),
            )
            conn.commit()

    def revoke_token(self, token_id: int) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM access_tokens WHERE id = %s", (token_id,))
            conn.commit()
            return cursor.rowcount == 1


# pinauth/adapters/repository/postgres.py -> <project root>/migrations
MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def run_migrations(pool: ConnectionPool, migrations_dir: Path = MIGRATIONS_DIR) -> None:
    """
    Apply every ``*.sql`` file in migrations_dir, in filename order.

    Each file runs in its own transaction and must be idempotent
    (CREATE ... IF NOT EXISTS), since all files run on every startup.

    Raises:
        RuntimeError: A migration failed; its transaction was rolled back
    """
    sql_files = sorted(migrations_dir.glob("*.sql"))
    if not sql_files:
        logger.warning("No migrations found in %s", migrations_dir)
        return

    with pool.connection() as conn:
        for sql_file in sql_files:
            try:
                with conn.transaction():
                    conn.execute(sql_file.read_text())
            except psycopg.Error as e:
                logger.error("Migration %s failed: %s", sql_file.name, e)
                raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
            logger.debug("Applied migration %s", sql_file.name)

    logger.info("Applied %d migration(s)", len(sql_files))
