"""
API v1 routes.

Defines the /auth REST endpoints: email check and PIN login, the OTP
registration steps, and the bearer-protected logout and me endpoints.

Domain errors propagate to the handlers in pinauth.api.errors, which
render them as {status, message} with the error's HTTP code.
"""

from fastapi import APIRouter, Depends, status

from pinauth.api.dependencies import (
    CurrentAuth,
    get_authentication_service,
    get_current_auth,
    get_registration_service,
)
from pinauth.api.models import (
    AuthResponse,
    CurrentUser,
    EmailRequest,
    ErrorResponse,
    LoginPinRequest,
    MeResponse,
    OtpSentResponse,
    SetNameRequest,
    SetPinRequest,
    StatusResponse,
    UserProfile,
    ValidationErrorResponse,
    VerifyOtpRequest,
)
from pinauth.domain.authentication import AuthenticationService
from pinauth.domain.registration import RegistrationService

router = APIRouter(prefix="/auth", tags=["auth"])

_validation = {422: {"model": ValidationErrorResponse, "description": "Validation error"}}
_unauthenticated = {401: {"model": ErrorResponse, "description": "Unauthenticated"}}


@router.post(
    "/check-email-login",
    response_model=StatusResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Email not registered"},
        **_validation,
    },
    summary="Check an email before PIN login",
)
def check_email_login(
    request_data: EmailRequest,
    service: AuthenticationService = Depends(get_authentication_service),
) -> StatusResponse:
    service.check_email_for_login(request_data.email)
    return StatusResponse(status="registered", message="Email is registered. Continue with your PIN.")


@router.post(
    "/login-pin",
    response_model=AuthResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid email or PIN"},
        **_validation,
    },
    summary="Log in with email and PIN",
)
def login_pin(
    request_data: LoginPinRequest,
    service: AuthenticationService = Depends(get_authentication_service),
) -> AuthResponse:
    """
    Log in and receive a new bearer token.

    Unknown email and wrong PIN return the same 401 response.
    """
    result = service.login_with_pin(request_data.email, request_data.pin_code)
    return AuthResponse(
        status="success",
        message="Login successful.",
        token=result.token,
        user=UserProfile(**result.user.profile()),
    )


@router.post(
    "/check-email-register",
    response_model=OtpSentResponse,
    responses={
        422: {"model": ErrorResponse, "description": "Email already used or validation error"},
        500: {"model": ErrorResponse, "description": "OTP could not be sent"},
    },
    summary="Start registration and email an OTP",
)
def check_email_register(
    request_data: EmailRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> OtpSentResponse:
    """
    Email a 6-digit code to an unregistered address.

    Calling again restarts registration and invalidates the previous code.
    """
    expires_in = service.request_otp(request_data.email)
    return OtpSentResponse(
        status="otp_sent",
        message="OTP has been sent to your email.",
        expires_in=expires_in,
    )


@router.post(
    "/verify-otp",
    response_model=StatusResponse,
    responses={422: {"model": ErrorResponse, "description": "Invalid or expired OTP"}},
    summary="Verify the emailed OTP",
)
def verify_otp(
    request_data: VerifyOtpRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> StatusResponse:
    service.verify_otp(request_data.email, request_data.otp_code)
    return StatusResponse(status="verified", message="OTP verified. Please enter your name.")


@router.post(
    "/set-name",
    response_model=StatusResponse,
    responses={422: {"model": ErrorResponse, "description": "OTP not verified"}},
    summary="Set the account name",
)
def set_name(
    request_data: SetNameRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> StatusResponse:
    service.set_name(request_data.email, request_data.name)
    return StatusResponse(status="name_saved", message="Name saved. Please create your PIN.")


@router.post(
    "/set-pin",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        422: {"model": ErrorResponse, "description": "Incomplete data or email already used"},
        500: {"model": ErrorResponse, "description": "Registration failed"},
    },
    summary="Set the PIN and create the account",
)
def set_pin(
    request_data: SetPinRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> AuthResponse:
    """
    Create the account from a verified, named registration.

    The user, the record deletion and the first token are committed together.
    """
    result = service.set_pin(request_data.email, request_data.pin_code)
    return AuthResponse(
        status="registered",
        message="Registration successful.",
        token=result.token,
        user=UserProfile(**result.user.profile()),
    )


@router.post(
    "/logout",
    response_model=StatusResponse,
    responses=_unauthenticated,
    summary="Revoke the current bearer token",
)
def logout(
    auth: CurrentAuth = Depends(get_current_auth),
    service: AuthenticationService = Depends(get_authentication_service),
) -> StatusResponse:
    service.logout(auth.token_id)
    return StatusResponse(status="success", message="Logout successful.")


@router.get(
    "/me",
    response_model=MeResponse,
    responses=_unauthenticated,
    summary="Get the authenticated user",
)
def me(auth: CurrentAuth = Depends(get_current_auth)) -> MeResponse:
    user = auth.user
    return MeResponse(
        status="success",
        message="User retrieved.",
        data=CurrentUser(
            id=user.id,
            name=user.name,
            email=user.email,
            email_verified_at=user.email_verified_at,
        ),
    )
