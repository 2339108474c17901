"""
Authentication domain service - PIN login and bearer tokens.

Login never distinguishes an unknown email from a wrong PIN: both raise
InvalidCredentials after the same bcrypt work. Tokens are opaque and
per-device; logging out revokes only the token used for the request.
"""

import logging
from dataclasses import dataclass

from .exceptions import EmailNotFound, InvalidCredentials, Unauthenticated
from .ports import AuthResult, TokenRepository, User, UserRepository
from .registration import normalize_email
from .security import (
    format_token,
    generate_token_secret,
    hash_token_secret,
    parse_token,
    token_secret_matches,
    verify_secret,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthenticationService:
    """Domain service for login, token resolution and logout."""

    users: UserRepository
    tokens: TokenRepository
    bcrypt_cost: int = 10
    token_name: str = "auth_token"

    def check_email_for_login(self, email: str) -> bool:
        """
        Confirm an email belongs to a registered user.

        Raises:
            EmailNotFound: No user for the email
        """
        normalized_email = normalize_email(email)
        if not self.users.email_exists(normalized_email):
            raise EmailNotFound(normalized_email)
        return True

    def login_with_pin(self, email: str, pin: str) -> AuthResult:
        """
        Authenticate with email and PIN and issue a new bearer token.

        Raises:
            InvalidCredentials: Unknown email or wrong PIN
        """
        normalized_email = normalize_email(email)
        user = self.users.get_by_email(normalized_email)

        # Always run bcrypt so both failure paths take the same time
        if user is None:
            verify_secret(pin, None, rounds=self.bcrypt_cost)
            raise InvalidCredentials()
        if not user.verify_pin(pin):
            raise InvalidCredentials()

        return AuthResult(user=user, token=self.issue_token(user))

    def issue_token(self, user: User) -> str:
        """Create and store a new token for the user; returns the plaintext."""
        secret = generate_token_secret()
        token_id = self.tokens.create_token(user.id, self.token_name, hash_token_secret(secret))
        return format_token(token_id, secret)

    def authenticate(self, token: str | None) -> tuple[User, int]:
        """
        Resolve a plaintext bearer token to its user.

        Returns:
            Tuple of (user, token_id)

        Raises:
            Unauthenticated: Token missing, malformed, unknown or revoked
        """
        parsed = parse_token(token) if token else None
        if parsed is None:
            raise Unauthenticated()

        token_id, secret = parsed
        stored = self.tokens.find_token(token_id)
        if stored is None:
            raise Unauthenticated()

        user_id, token_hash = stored
        if not token_secret_matches(secret, token_hash):
            raise Unauthenticated()

        user = self.users.get_by_id(user_id)
        if user is None:
            raise Unauthenticated()

        self.tokens.touch_token(token_id)
        return user, token_id

    def logout(self, token_id: int) -> None:
        """Revoke exactly one token; the user's other tokens stay valid."""
        if not self.tokens.revoke_token(token_id):
            logger.warning("Logout for unknown token id=%s", token_id)
