"""
Domain exceptions - Semantic error types for authentication and registration.

Each exception carries the stable ``status`` string and HTTP code the API
layer reports, so the mapping lives next to the error it describes and
no infrastructure detail reaches the caller.
"""


class AuthError(Exception):
    """Base class for authentication domain errors."""

    status: str = "error"
    http_status: int = 500
    message: str = "Something went wrong. Please try again."


class EmailNotFound(AuthError):
    """No user is registered under the email."""

    status = "not_found"
    http_status = 404
    message = "Email is not registered."


class EmailAlreadyUsed(AuthError):
    """A user already exists for the email."""

    status = "used"
    http_status = 422
    message = "Email is already in use. Please log in or use another email."


class InvalidCredentials(AuthError):
    """Unknown email or PIN mismatch (never distinguished)."""

    status = "unauthorized"
    http_status = 401
    message = "Invalid email or PIN."


class InvalidOrExpiredOtp(AuthError):
    """No usable OTP record, expired record, or code mismatch."""

    status = "invalid"
    http_status = 422
    message = "OTP is invalid or has expired."


class OtpNotVerified(AuthError):
    """Name step attempted before the OTP was verified."""

    status = "otp_required"
    http_status = 422
    message = "OTP has not been verified."


class IncompleteRegistrationData(AuthError):
    """PIN step attempted before OTP verification and name were both done."""

    status = "incomplete_data"
    http_status = 422
    message = "Please set your name first."


class OtpDeliveryFailed(AuthError):
    """OTP record could not be stored or the email could not be sent."""

    status = "error"
    http_status = 500
    message = "Failed to send OTP. Please try again."


class RegistrationFailed(AuthError):
    """Account creation transaction was rolled back."""

    status = "error"
    http_status = 500
    message = "Registration failed. Please try again."


class Unauthenticated(AuthError):
    """Bearer token missing, malformed, unknown or revoked."""

    status = "unauthenticated"
    http_status = 401
    message = "Unauthenticated."
