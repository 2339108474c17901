"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- An in-memory store implementing the user, registration and token ports
- A controllable clock for expiry tests
- A recording email sender
- Domain services wired to the fakes
- A PostgreSQL pool for integration and adversarial tests
"""

import threading
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import bcrypt
import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from pinauth.adapters.repository.postgres import run_migrations
from pinauth.config.settings import get_settings
from pinauth.domain.authentication import AuthenticationService
from pinauth.domain.exceptions import EmailAlreadyUsed, IncompleteRegistrationData
from pinauth.domain.ports import OtpRegistration, User
from pinauth.domain.registration import RegistrationService

# bcrypt minimum work factor keeps the unit suite fast
TEST_BCRYPT_COST = 4


class InMemoryAuthStore:
    """Implements UserRepository, RegistrationRepository and TokenRepository in memory."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.registrations: dict[str, OtpRegistration] = {}
        self.tokens: dict[int, tuple[int, str]] = {}
        self.touched: list[int] = []
        self.fail_token_insert = False
        self._next_user_id = 1
        self._next_token_id = 1
        self._lock = threading.Lock()

    # UserRepository
    def get_by_email(self, email: str) -> User | None:
        return self.users.get(email)

    def get_by_id(self, user_id: int) -> User | None:
        return next((u for u in self.users.values() if u.id == user_id), None)

    def email_exists(self, email: str) -> bool:
        return email in self.users

    # RegistrationRepository
    def upsert_otp(self, email: str, otp_hash: str, expires_at: datetime) -> None:
        self.registrations[email] = OtpRegistration(
            email=email, otp_code=otp_hash, expires_at=expires_at
        )

    def get_otp(self, email: str) -> OtpRegistration | None:
        return self.registrations.get(email)

    def delete_otp(self, email: str) -> None:
        self.registrations.pop(email, None)

    def mark_verified(self, email: str, otp_hash: str, expires_at: datetime) -> bool:
        record = self.registrations.get(email)
        if record is None or record.otp_code != otp_hash:
            return False
        self.registrations[email] = OtpRegistration(
            email=email,
            otp_code=record.otp_code,
            expires_at=expires_at,
            is_verified=True,
            name=record.name,
        )
        return True

    def set_name(self, email: str, name: str) -> bool:
        record = self.registrations.get(email)
        if record is None or not record.is_verified:
            return False
        self.registrations[email] = OtpRegistration(
            email=email,
            otp_code=record.otp_code,
            expires_at=record.expires_at,
            is_verified=True,
            name=name,
        )
        return True

    def complete_registration(
        self,
        email: str,
        pin_hash: str,
        verified_at: datetime,
        token_name: str,
        token_hash: str,
    ) -> tuple[User, int]:
        with self._lock:
            record = self.registrations.get(email)
            if record is None or not record.is_verified or not record.name:
                if email in self.users:
                    raise EmailAlreadyUsed(email)
                raise IncompleteRegistrationData(email)
            if email in self.users:
                raise EmailAlreadyUsed(email)
            if self.fail_token_insert:
                # Nothing was written yet, which is what a rollback leaves behind
                raise RuntimeError("token insert failed")

            user = User(
                id=self._next_user_id,
                name=record.name,
                email=email,
                pin_code=pin_hash,
                email_verified_at=verified_at,
            )
            self._next_user_id += 1
            self.users[email] = user
            del self.registrations[email]
            token_id = self._store_token(user.id, token_hash)
            return user, token_id

    # TokenRepository
    def create_token(self, user_id: int, name: str, token_hash: str) -> int:
        with self._lock:
            return self._store_token(user_id, token_hash)

    def find_token(self, token_id: int) -> tuple[int, str] | None:
        return self.tokens.get(token_id)

    def touch_token(self, token_id: int) -> None:
        self.touched.append(token_id)

    def revoke_token(self, token_id: int) -> bool:
        return self.tokens.pop(token_id, None) is not None

    def _store_token(self, user_id: int, token_hash: str) -> int:
        token_id = self._next_token_id
        self._next_token_id += 1
        self.tokens[token_id] = (user_id, token_hash)
        return token_id


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingEmailSender:
    """Collects sent codes instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    def send_otp_code(self, email: str, code: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP relay unavailable")
        self.sent.append((email, code))

    def last_code(self, email: str) -> str:
        return next(code for to, code in reversed(self.sent) if to == email)


@pytest.fixture
def store() -> InMemoryAuthStore:
    return InMemoryAuthStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def registration_service(
    store: InMemoryAuthStore, email_sender: RecordingEmailSender, clock: FakeClock
) -> RegistrationService:
    """Registration service wired to in-memory ports."""
    return RegistrationService(
        users=store,
        registrations=store,
        email_sender=email_sender,
        bcrypt_cost=TEST_BCRYPT_COST,
        clock=clock,
    )


@pytest.fixture
def auth_service(store: InMemoryAuthStore) -> AuthenticationService:
    return AuthenticationService(users=store, tokens=store, bcrypt_cost=TEST_BCRYPT_COST)


@pytest.fixture(scope="session")
def pg_pool() -> Generator[ConnectionPool, None, None]:
    """
    Connection pool against DATABASE_URL with migrations applied.

    Tests using it are skipped when PostgreSQL is not reachable.
    """
    pool = ConnectionPool(
        conninfo=get_settings().database_url,
        min_size=1,
        max_size=10,
        open=False,
    )
    try:
        pool.open(wait=True, timeout=3)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")

    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_pg(pg_pool: ConnectionPool) -> ConnectionPool:
    """Empty all tables and return the pool."""
    with pg_pool.connection() as conn:
        conn.execute("TRUNCATE access_tokens, users, otp_registrations RESTART IDENTITY CASCADE")
        conn.commit()
    return pg_pool


@pytest.fixture
def stage_registration(clean_pg: ConnectionPool):
    """
    Factory inserting an OTP registration row directly.

    The stored code is always "482913".
    """
    otp_hash = bcrypt.hashpw(b"482913", bcrypt.gensalt(4)).decode()

    def stage(
        email: str,
        name: str | None = None,
        is_verified: bool = True,
        expires_in: timedelta = timedelta(minutes=15),
    ) -> None:
        with clean_pg.connection() as conn:
            conn.execute(
                """INSERT INTO otp_registrations (email, name, otp_code, expires_at, is_verified)
                   VALUES (%s, %s, %s, %s, %s)""",
                (email, name, otp_hash, datetime.now(timezone.utc) + expires_in, is_verified),
            )
            conn.commit()

    return stage
