"""
OTP Router

Public endpoints for the one-time passcode flow, mounted under /auth.

Endpoints:
- POST /auth/send-otp - Issue a code and email it
- POST /auth/verify-otp - Verify a code (kept alive for a following reset)
- POST /auth/reset-password-after-otp - Set a new password, consuming the code

Security:
- Issuance is rate limited per email via Redis (in-memory fallback)
- Failed code matches are counted per challenge; the limit burns the code
- Codes are never included in responses
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import enforce_rate_limit
from app.modules.otp import service
from app.modules.otp.schemas import (
    ResetPasswordRequest,
    ResetPasswordResponse,
    SendOtpRequest,
    SendOtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from app.modules.otp.service import OtpServiceError
from app.modules.users.repository import normalize_email

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"description": "Malformed input, wrong code, or expired code"},
    404: {"description": "No account for this email"},
    429: {"description": "Too many attempts"},
}


def _raise_http(e: OtpServiceError) -> NoReturn:
    raise HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    ) from e


def _raise_internal(action: str, e: Exception) -> NoReturn:
    logger.exception(f"Unexpected error {action}: {e}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    ) from e


@router.post(
    "/send-otp",
    response_model=SendOtpResponse,
    summary="Send Verification Code",
    description="""
Issue a 6-digit verification code for the account and email it.

Any previously issued code stops working. The code is valid for 10 minutes.
If the email cannot be delivered the code is still stored and the response
reports `delivered_via: "fallback"`.
""",
    responses={404: _ERROR_RESPONSES[404], 429: _ERROR_RESPONSES[429]},
)
async def send_otp(
    data: SendOtpRequest,
    db: AsyncSession = Depends(get_db),
) -> SendOtpResponse:
    """
    Issue and email a verification code.

    Raises:
        HTTPException 404: No account for this email
        HTTPException 429: Too many codes requested for this email
    """
    await enforce_rate_limit(
        f"otp_issue:{normalize_email(data.email)}",
        settings.otp_issue_rate_limit,
        settings.otp_issue_rate_window_seconds,
    )

    try:
        return await service.issue_otp(db, data.email)
    except OtpServiceError as e:
        _raise_http(e)
    except Exception as e:
        _raise_internal("issuing OTP", e)


@router.post(
    "/verify-otp",
    response_model=VerifyOtpResponse,
    summary="Verify Code",
    description="""
Check a verification code. On success the account is marked verified and the
same code remains usable for one call to `/auth/reset-password-after-otp`.
""",
    responses=_ERROR_RESPONSES,
)
async def verify_otp(
    data: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
) -> VerifyOtpResponse:
    try:
        return await service.verify_otp(db, data.email, data.code)
    except OtpServiceError as e:
        _raise_http(e)
    except Exception as e:
        _raise_internal("verifying OTP", e)


@router.post(
    "/reset-password-after-otp",
    response_model=ResetPasswordResponse,
    status_code=status.HTTP_200_OK,
    summary="Reset Password With Code",
    description="""
Set a new password using a verification code, either one already confirmed
via `/auth/verify-otp` or a fresh one. The code is consumed on success.
Passwords must be at least 6 characters and match the confirmation.
""",
    responses=_ERROR_RESPONSES,
)
async def reset_password_after_otp(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> ResetPasswordResponse:
    try:
        return await service.reset_password_after_otp(
            db,
            email=data.email,
            code=data.code,
            new_password=data.new_password,
            confirm_password=data.confirm_password,
        )
    except OtpServiceError as e:
        _raise_http(e)
    except Exception as e:
        _raise_internal("resetting password", e)
