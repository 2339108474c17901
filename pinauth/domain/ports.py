"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the records the domain works with and the interfaces
(ports) it requires from infrastructure. Adapters implement these protocols.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from .security import verify_secret


class RegistrationState(str, Enum):
    """
    Registration State Machine states, derived from the OTP record.

    State Transitions:
    - NONE -> OTP_SENT (code emailed, record upserted)
    - OTP_SENT -> OTP_VERIFIED (correct code before expiry)
    - OTP_VERIFIED -> NAME_SET (name stored)
    - NAME_SET -> REGISTERED (user created, record deleted)

    Any state except REGISTERED goes back to OTP_SENT when a new code is
    requested for the same email.
    """

    NONE = "NONE"
    OTP_SENT = "OTP_SENT"
    OTP_VERIFIED = "OTP_VERIFIED"
    NAME_SET = "NAME_SET"
    REGISTERED = "REGISTERED"


@dataclass(frozen=True)
class User:
    """Registered account. Never mutated by the registration flow."""

    id: int
    name: str
    email: str
    pin_code: str
    email_verified_at: datetime | None = None

    def verify_pin(self, pin: str) -> bool:
        return verify_secret(pin, self.pin_code)

    def profile(self) -> dict[str, object]:
        """Public fields returned to API clients."""
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass(frozen=True)
class OtpRegistration:
    """Transient registration record, one per email."""

    email: str
    otp_code: str
    expires_at: datetime
    is_verified: bool = False
    name: str | None = None

    @property
    def state(self) -> RegistrationState:
        if not self.is_verified:
            return RegistrationState.OTP_SENT
        if not self.name:
            return RegistrationState.OTP_VERIFIED
        return RegistrationState.NAME_SET

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def verify(self, code: str) -> bool:
        """Check a plaintext code against the stored hash."""
        return verify_secret(code, self.otp_code)


@dataclass(frozen=True)
class AuthResult:
    """A user together with a freshly issued plaintext bearer token."""

    user: User
    token: str


class UserRepository(Protocol):
    """Port interface for user lookups."""

    def get_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: int) -> User | None: ...

    def email_exists(self, email: str) -> bool: ...


class RegistrationRepository(Protocol):
    """Port interface for OTP registration persistence."""

    def upsert_otp(self, email: str, otp_hash: str, expires_at: datetime) -> None:
        """
        Create or replace the registration record for an email.

        Resets is_verified to False and clears any stored name.
        """
        ...

    def get_otp(self, email: str) -> OtpRegistration | None: ...

    def delete_otp(self, email: str) -> None: ...

    def mark_verified(self, email: str, otp_hash: str, expires_at: datetime) -> bool:
        """
        Set is_verified and push expires_at to the grace deadline.

        Only applies while the record still holds otp_hash, so a code
        replaced by a newer request cannot verify the new record.

        Returns:
            True if the record was updated, False otherwise
        """
        ...

    def set_name(self, email: str, name: str) -> bool:
        """
        Store the name on a verified record.

        Returns:
            True if a verified record was updated, False otherwise
        """
        ...

    def complete_registration(
        self,
        email: str,
        pin_hash: str,
        verified_at: datetime,
        token_name: str,
        token_hash: str,
    ) -> tuple[User, int]:
        """
        Atomically turn a completed registration record into a user.

        In one transaction: delete the verified, named record, insert the
        user with the record's name, and insert an access token for them.
        Either all three writes are committed or none are.

        Returns:
            The created user and the id of the issued access token

        Raises:
            EmailAlreadyUsed: A user for the email exists (unique constraint)
            IncompleteRegistrationData: The record is gone or not ready
            RegistrationFailed: Any other failure; nothing was committed
        """
        ...


class TokenRepository(Protocol):
    """Port interface for bearer token persistence."""

    def create_token(self, user_id: int, name: str, token_hash: str) -> int:
        """Store a token digest and return the token id."""
        ...

    def find_token(self, token_id: int) -> tuple[int, str] | None:
        """Return (user_id, token_hash) for a live token, or None."""
        ...

    def touch_token(self, token_id: int) -> None: ...

    def revoke_token(self, token_id: int) -> bool:
        """Delete one token. Returns True if it existed."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_otp_code(self, email: str, code: str) -> None:
        """
        Send a registration OTP code to an email address.

        Args:
            email: Recipient email address
            code: 6-digit plaintext code

        Raises:
            Exception: Any delivery failure propagates to the caller
        """
        ...
