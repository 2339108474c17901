"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from psycopg_pool import ConnectionPool

from pinauth.adapters.repository.postgres import (
    PostgresRegistrationRepository,
    PostgresTokenRepository,
    PostgresUserRepository,
)
from pinauth.adapters.smtp.console import ConsoleEmailSender
from pinauth.adapters.smtp.sender import SmtpEmailSender
from pinauth.config.settings import Settings, get_settings
from pinauth.domain.authentication import AuthenticationService
from pinauth.domain.ports import EmailSender, User
from pinauth.domain.registration import RegistrationService


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def build_email_sender(settings: Settings) -> EmailSender:
    """Pick the email backend named by settings.email_backend."""
    if settings.email_backend == "smtp":
        return SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.mail_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout,
            ttl_minutes=settings.otp_ttl_minutes,
        )
    return ConsoleEmailSender()


def get_email_sender(request: Request) -> EmailSender:
    """Get the email sender built at startup, or build one from settings."""
    sender = getattr(request.app.state, "email_sender", None)
    if sender is None:
        sender = build_email_sender(get_settings())
    return sender


def get_registration_service(request: Request) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the repositories and email sender for the domain service.
    """
    settings = get_settings()
    pool = get_pool(request)
    return RegistrationService(
        users=PostgresUserRepository(pool),
        registrations=PostgresRegistrationRepository(pool),
        email_sender=get_email_sender(request),
        otp_ttl_minutes=settings.otp_ttl_minutes,
        otp_grace_minutes=settings.otp_grace_minutes,
        bcrypt_cost=settings.bcrypt_cost,
        token_name=settings.token_name,
    )


def get_authentication_service(request: Request) -> AuthenticationService:
    """Create authentication service with user and token repositories."""
    settings = get_settings()
    pool = get_pool(request)
    return AuthenticationService(
        users=PostgresUserRepository(pool),
        tokens=PostgresTokenRepository(pool),
        bcrypt_cost=settings.bcrypt_cost,
        token_name=settings.token_name,
    )


# Bearer security scheme for OpenAPI documentation; missing headers are
# reported by AuthenticationService so every failure shares one envelope
http_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentAuth:
    """Authenticated user plus the id of the token used for the request."""

    user: User
    token_id: int


def get_current_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    service: AuthenticationService = Depends(get_authentication_service),
) -> CurrentAuth:
    """
    Resolve the bearer token on the request.

    Raises:
        Unauthenticated: Missing, malformed, unknown or revoked token
    """
    token = credentials.credentials if credentials is not None else None
    user, token_id = service.authenticate(token)
    return CurrentAuth(user=user, token_id=token_id)
