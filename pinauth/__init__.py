"""pinauth - Email + PIN authentication with OTP-verified registration."""

__version__ = "0.1.0"
