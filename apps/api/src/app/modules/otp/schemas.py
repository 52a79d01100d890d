"""
OTP Schemas

Pydantic schemas for the one-time passcode endpoints. Code format and
password rules are enforced in the service layer so every failure maps onto
the same error taxonomy.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class DeliveryChannel(str, Enum):
    """How a freshly issued code reached (or failed to reach) the user."""

    EMAIL = "email"
    FALLBACK = "fallback"


def _coerce_code(value: object) -> object:
    # Clients sometimes post the code as a JSON number
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class SendOtpRequest(BaseModel):
    """Request body for POST /auth/send-otp."""

    email: EmailStr


class SendOtpResponse(BaseModel):
    """Result of issuing a code. The code itself is never returned."""

    success: bool = True
    delivered_via: DeliveryChannel
    message: str
    expires_in_seconds: int


class VerifyOtpRequest(BaseModel):
    """Request body for POST /auth/verify-otp."""

    email: EmailStr
    code: str = Field(..., max_length=32)

    _normalize_code = field_validator("code", mode="before")(_coerce_code)


class VerifyOtpResponse(BaseModel):
    verified: bool = True
    account_id: UUID
    message: str = "Code verified successfully."


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password-after-otp."""

    email: EmailStr
    code: str = Field(..., max_length=32)
    new_password: str = Field(..., max_length=128)
    confirm_password: str = Field(..., max_length=128)

    _normalize_code = field_validator("code", mode="before")(_coerce_code)


class ResetPasswordResponse(BaseModel):
    success: bool = True
    message: str = "Password changed successfully."
