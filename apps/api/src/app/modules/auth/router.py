"""
Authentication Router

Endpoints:
- POST /auth/register - Create a student account and email a verification code
- POST /auth/login - Exchange credentials for JWTs (also set as a cookie)
- POST /auth/logout - Clear the auth cookie
- POST /auth/refresh - Exchange a refresh token for a new access token
- GET /auth/me - Current account

The one-time passcode endpoints live in app.modules.otp.router and share
the /auth prefix.
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import ACCESS_TOKEN_COOKIE, get_current_user
from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import rate_limit
from app.modules.auth import service
from app.modules.auth.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UserResponse,
)
from app.modules.auth.service import AuthServiceError
from app.modules.users.models import User

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_http(e: AuthServiceError) -> NoReturn:
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


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new student account",
)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    """
    Create an unverified student account.

    A verification code is emailed immediately; the account becomes verified
    once the code is confirmed via /auth/verify-otp.

    Raises:
        HTTPException 409: Email or username already registered
    """
    try:
        return await service.register(db, data)
    except AuthServiceError as e:
        _raise_http(e)
    except Exception as e:
        _raise_internal("during registration", e)


@router.post("/login", response_model=LoginResponse)
@rate_limit(limit=10, window_seconds=60)
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate user and return JWT tokens.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account inactive
        HTTPException 429: Too many attempts from this client
    """
    try:
        result = await service.login(db, credentials.email, credentials.password)
    except AuthServiceError as e:
        _raise_http(e)
    except Exception as e:
        _raise_internal("during login", e)

    _set_auth_cookie(response, result.access_token)
    return result


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear the auth cookie. Bearer tokens simply expire."""
    response.delete_cookie(
        key=ACCESS_TOKEN_COOKIE,
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
    )
    return MessageResponse(message="Logged out successfully.")


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    data: RefreshRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """Issue a new access token from a refresh token."""
    try:
        result = await service.refresh_access_token(db, data.refresh_token)
    except AuthServiceError as e:
        _raise_http(e)
    except Exception as e:
        _raise_internal("refreshing token", e)

    _set_auth_cookie(response, result.access_token)
    return result


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated account."""
    return UserResponse.model_validate(user)
