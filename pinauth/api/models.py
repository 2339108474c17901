"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

SIX_DIGITS = r"^[0-9]{6}$"


class EmailRequest(BaseModel):
    """Request model carrying only an email (login check, OTP request)."""

    email: EmailStr


class LoginPinRequest(BaseModel):
    """Request model for PIN login."""

    email: EmailStr
    pin_code: str = Field(..., pattern=SIX_DIGITS, description="6-digit PIN")


class VerifyOtpRequest(BaseModel):
    """Request model for OTP verification."""

    email: EmailStr
    otp_code: str = Field(..., pattern=SIX_DIGITS, description="6-digit code from email")


class SetNameRequest(BaseModel):
    """Request model for the name step. Name is trimmed before length checks."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    name: str = Field(..., min_length=2, max_length=255)


class SetPinRequest(BaseModel):
    """Request model for the PIN step that completes registration."""

    email: EmailStr
    pin_code: str = Field(..., pattern=SIX_DIGITS, description="6-digit PIN")


class UserProfile(BaseModel):
    id: int
    name: str
    email: str


class CurrentUser(UserProfile):
    email_verified_at: datetime | None = None


class StatusResponse(BaseModel):
    """Response model for steps that only report a status."""

    status: str
    message: str


class OtpSentResponse(StatusResponse):
    expires_in: int = Field(..., description="Minutes until the code expires")


class AuthResponse(StatusResponse):
    """Response model for login and completed registration."""

    token: str
    user: UserProfile


class MeResponse(StatusResponse):
    data: CurrentUser


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    status: str
    message: str


class FieldError(BaseModel):
    field: str
    message: str


class ValidationErrorResponse(ErrorResponse):
    errors: list[FieldError]
