"""
Secret handling - hashing, code generation and bearer token format.

OTP codes and PINs are stored as bcrypt hashes. Bearer tokens are handed
out as ``"<token_id>|<secret>"``; only the SHA-256 digest of the secret is
persisted, so a leaked token table cannot be replayed.
"""

import hashlib
import secrets
from functools import lru_cache

import bcrypt

CODE_LENGTH = 6
TOKEN_SEPARATOR = "|"


@lru_cache(maxsize=None)
def dummy_hash(rounds: int) -> str:
    """
    Hash compared against when there is no stored hash.

    Built once per work factor, so a missing record costs the same bcrypt
    work as a wrong code or PIN hashed with the configured cost.
    """
    return bcrypt.hashpw(b"dummy_secret_for_timing_safety", bcrypt.gensalt(rounds)).decode()


def generate_numeric_code(length: int = CODE_LENGTH) -> str:
    """
    Generate a cryptographically secure numeric code.

    Uniform over 0 .. 10**length - 1 and zero-padded, so "000042" is as
    likely as any other value.
    """
    return str(secrets.randbelow(10**length)).zfill(length)


def hash_secret(plaintext: str, rounds: int = 10) -> str:
    """Hash an OTP code or PIN with bcrypt."""
    return bcrypt.hashpw(plaintext.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_secret(plaintext: str, hashed: str | None, rounds: int = 10) -> bool:
    """
    Check a plaintext OTP code or PIN against its bcrypt hash.

    A None hash is checked against the dummy hash of the given work factor
    and always fails.
    """
    if hashed is None:
        bcrypt.checkpw(plaintext.encode(), dummy_hash(rounds).encode())
        return False
    try:
        return bcrypt.checkpw(plaintext.encode(), hashed.encode())
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def generate_token_secret() -> str:
    return secrets.token_hex(20)


def hash_token_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode()).hexdigest()


def format_token(token_id: int, secret: str) -> str:
    return f"{token_id}{TOKEN_SEPARATOR}{secret}"


def parse_token(token: str) -> tuple[int, str] | None:
    """
    Split a plaintext bearer token into (token_id, secret).

    Returns None for anything not shaped like ``"<digits>|<secret>"``.
    """
    token_id, sep, secret = token.partition(TOKEN_SEPARATOR)
    if not sep or not (token_id.isascii() and token_id.isdigit()) or not secret:
        return None
    return int(token_id), secret


def token_secret_matches(secret: str, token_hash: str) -> bool:
    """Constant-time comparison of a presented secret with the stored digest."""
    return secrets.compare_digest(hash_token_secret(secret).encode(), token_hash.encode())
