"""
Registration domain service - OTP registration state machine.

This module contains the business logic for creating an account: the
email is proven with a one-time passcode, then a name and a PIN are set
and the account is created.

Registration State Machine
==========================

States (derived from the transient OtpRegistration record):
- NONE: No record for the email
- OTP_SENT: Code emailed, hash and 10-minute expiry stored
- OTP_VERIFIED: Code matched; expiry pushed to a 15-minute grace window
- NAME_SET: Name stored on the verified record
- REGISTERED: Terminal. User created and the record deleted

Transitions:
    NONE/OTP_SENT/OTP_VERIFIED/NAME_SET -> OTP_SENT  (request_otp, restarts flow)
    OTP_SENT -> OTP_VERIFIED                          (verify_otp)
    OTP_VERIFIED/NAME_SET -> NAME_SET                 (set_name)
    NAME_SET -> REGISTERED                            (set_pin)

Note: request state is never cached in-process; every step re-reads the
record from the repository. The final step runs in a single database
transaction and relies on the users.email UNIQUE constraint to settle
concurrent completions.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .exceptions import (
    AuthError,
    EmailAlreadyUsed,
    IncompleteRegistrationData,
    InvalidOrExpiredOtp,
    OtpDeliveryFailed,
    OtpNotVerified,
    RegistrationFailed,
)
from .ports import AuthResult, EmailSender, RegistrationRepository, UserRepository
from .security import (
    format_token,
    generate_numeric_code,
    generate_token_secret,
    hash_secret,
    hash_token_secret,
    verify_secret,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


@dataclass
class RegistrationService:
    """
    Domain service for the OTP registration flow.

    Orchestrates code generation, hashing, expiry bookkeeping and the
    final account creation.
    """

    users: UserRepository
    registrations: RegistrationRepository
    email_sender: EmailSender
    otp_ttl_minutes: int = 10
    otp_grace_minutes: int = 15
    bcrypt_cost: int = 10
    token_name: str = "auth_token"
    clock: Callable[[], datetime] = field(default=utcnow)

    def request_otp(self, email: str) -> int:
        """
        Send a fresh registration code, restarting any flow in progress.

        Args:
            email: Email address to register (will be normalized)

        Returns:
            Minutes until the code expires

        Raises:
            EmailAlreadyUsed: A user is already registered with the email
            OtpDeliveryFailed: The record could not be stored or the email
                could not be sent; calling request_otp again is safe
        """
        normalized_email = normalize_email(email)
        if self.users.email_exists(normalized_email):
            raise EmailAlreadyUsed(normalized_email)

        code = generate_numeric_code()
        expires_at = self.clock() + timedelta(minutes=self.otp_ttl_minutes)

        try:
            self.registrations.upsert_otp(
                normalized_email, hash_secret(code, self.bcrypt_cost), expires_at
            )
        except Exception as e:
            logger.error("Failed to store OTP for %s: %s", normalized_email, e)
            raise OtpDeliveryFailed(normalized_email) from e

        try:
            self.email_sender.send_otp_code(normalized_email, code)
        except Exception as e:
            logger.error("Failed to send OTP to %s: %s", normalized_email, e)
            self._discard_otp(normalized_email)
            raise OtpDeliveryFailed(normalized_email) from e

        return self.otp_ttl_minutes

    def verify_otp(self, email: str, code: str) -> None:
        """
        Verify the emailed code and open the grace window.

        Raises:
            InvalidOrExpiredOtp: No record, record expired, or code mismatch
        """
        normalized_email = normalize_email(email)
        now = self.clock()
        record = self.registrations.get_otp(normalized_email)

        if record is None or record.is_expired(now):
            # Keep the bcrypt cost identical to a wrong-code attempt
            verify_secret(code, None, rounds=self.bcrypt_cost)
            raise InvalidOrExpiredOtp(normalized_email)

        if not record.verify(code):
            raise InvalidOrExpiredOtp(normalized_email)

        verified = self.registrations.mark_verified(
            normalized_email, record.otp_code, now + timedelta(minutes=self.otp_grace_minutes)
        )
        if not verified:
            # A newer request replaced the code between the read and the update
            raise InvalidOrExpiredOtp(normalized_email)

    def set_name(self, email: str, name: str) -> None:
        """
        Store the display name on a verified registration.

        Expiry is not re-checked here.

        Raises:
            OtpNotVerified: No verified record for the email
        """
        normalized_email = normalize_email(email)
        if not self.registrations.set_name(normalized_email, name.strip()):
            raise OtpNotVerified(normalized_email)

    def set_pin(self, email: str, pin: str) -> AuthResult:
        """
        Create the account and issue its first bearer token.

        Raises:
            IncompleteRegistrationData: OTP not verified or name not set
            EmailAlreadyUsed: A user for the email exists already
            RegistrationFailed: The account transaction was rolled back
        """
        normalized_email = normalize_email(email)
        record = self.registrations.get_otp(normalized_email)
        if self.users.email_exists(normalized_email):
            # Covers a concurrent completion that already removed the record
            raise EmailAlreadyUsed(normalized_email)
        if record is None or not record.is_verified or not record.name:
            raise IncompleteRegistrationData(normalized_email)

        secret = generate_token_secret()
        try:
            user, token_id = self.registrations.complete_registration(
                normalized_email,
                hash_secret(pin, self.bcrypt_cost),
                self.clock(),
                self.token_name,
                hash_token_secret(secret),
            )
        except AuthError:
            raise
        except Exception as e:
            logger.exception("Registration transaction failed for %s", normalized_email)
            raise RegistrationFailed(normalized_email) from e

        logger.info("Registered user id=%s", user.id)
        return AuthResult(user=user, token=format_token(token_id, secret))

    def _discard_otp(self, email: str) -> None:
        """Remove a record whose code never reached the user."""
        try:
            self.registrations.delete_otp(email)
        except Exception:
            logger.exception("Failed to discard undelivered OTP for %s", email)
