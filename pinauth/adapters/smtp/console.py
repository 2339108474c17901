"""
Console email sender - development stand-in for SMTP delivery.

Writes each OTP to the application log instead of a mailbox. The log
line format is stable so integration tests can read the code back.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """EmailSender that logs codes at INFO (EMAIL_BACKEND=console)."""

    def send_otp_code(self, email: str, code: str) -> None:
        logger.info("[OTP] Email: %s Code: %s", email, code)
