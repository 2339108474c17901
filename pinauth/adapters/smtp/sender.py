"""
SMTP email sender adapter - Implements EmailSender protocol.

Delivers OTP codes through an SMTP relay using smtplib. Failures are
raised, not swallowed: the registration service turns them into
OtpDeliveryFailed and discards the stored code.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Your verification code"


def build_otp_message(sender: str, recipient: str, code: str, ttl_minutes: int) -> MIMEMultipart:
    """Build the plain + HTML OTP email."""
    plain_body = (
        f"Your verification code is {code}.\n"
        f"It expires in {ttl_minutes} minutes. "
        "If you did not request it, ignore this email."
    )
    html_body = (
        f"<p>Your verification code is <strong>{code}</strong>.</p>"
        f"<p>It expires in {ttl_minutes} minutes. "
        "If you did not request it, ignore this email.</p>"
    )

    msg = MIMEMultipart("alternative")
    msg["Subject"] = OTP_SUBJECT
    msg["From"] = sender
    msg["To"] = recipient
    msg.attach(MIMEText(plain_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg


class SmtpEmailSender:
    """Implements EmailSender protocol via an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: int = 15,
        ttl_minutes: int = 10,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout
        self._ttl_minutes = ttl_minutes

    def send_otp_code(self, email: str, code: str) -> None:
        """
        Send the OTP code to the recipient.

        Raises:
            smtplib.SMTPException, OSError: Connection or delivery failure
        """
        msg = build_otp_message(self._sender, email, code, self._ttl_minutes)

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as conn:
            conn.ehlo()
            if self._use_tls:
                conn.starttls()
                conn.ehlo()
            if self._username:
                conn.login(self._username, self._password or "")
            conn.sendmail(self._sender, [email], msg.as_string())

        logger.info("OTP email sent to %s", email)
