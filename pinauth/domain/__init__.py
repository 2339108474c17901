"""
Domain layer - Pure business logic with zero framework imports.

This package contains the registration state machine, PIN login and the
bearer token issuer. It defines its own port interfaces for infrastructure
abstraction, keeping the web framework and database out of the core.
"""

from .authentication import AuthenticationService
from .exceptions import (
    AuthError,
    EmailAlreadyUsed,
    EmailNotFound,
    IncompleteRegistrationData,
    InvalidCredentials,
    InvalidOrExpiredOtp,
    OtpDeliveryFailed,
    OtpNotVerified,
    RegistrationFailed,
    Unauthenticated,
)
from .ports import (
    AuthResult,
    EmailSender,
    OtpRegistration,
    RegistrationRepository,
    RegistrationState,
    TokenRepository,
    User,
    UserRepository,
)
from .registration import RegistrationService

__all__ = [
    "AuthError",
    "AuthResult",
    "AuthenticationService",
    "EmailAlreadyUsed",
    "EmailNotFound",
    "EmailSender",
    "IncompleteRegistrationData",
    "InvalidCredentials",
    "InvalidOrExpiredOtp",
    "OtpDeliveryFailed",
    "OtpNotVerified",
    "OtpRegistration",
    "RegistrationFailed",
    "RegistrationRepository",
    "RegistrationService",
    "RegistrationState",
    "TokenRepository",
    "Unauthenticated",
    "User",
    "UserRepository",
]
