"""
Authentication Service Layer

Registration, login and token refresh. Registration hands off to the OTP
service so every new account starts with a verification code in its inbox.
"""

import asyncio
import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    token_issued_before,
    verify_password,
)
from app.modules.auth.schemas import (
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UserResponse,
)
from app.modules.otp.service import issue_otp_for_user
from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


class AuthServiceError(Exception):
    """Base exception for authentication service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class AccountExistsError(AuthServiceError):
    def __init__(self):
        super().__init__(
            message="An account with this email or username already exists.",
            error_code="ACCOUNT_EXISTS",
            status_code=409,
        )


class InvalidCredentialsError(AuthServiceError):
    def __init__(self):
        super().__init__(
            message="Invalid email or password.",
            error_code="INVALID_CREDENTIALS",
            status_code=401,
        )


class AccountInactiveError(AuthServiceError):
    def __init__(self):
        super().__init__(
            message="Your account has been deactivated. Please contact support.",
            error_code="ACCOUNT_INACTIVE",
            status_code=403,
        )


class InvalidRefreshTokenError(AuthServiceError):
    def __init__(self):
        super().__init__(
            message="Invalid or expired refresh token.",
            error_code="INVALID_REFRESH_TOKEN",
            status_code=401,
        )


def _access_token_for(user: User) -> str:
    return create_access_token(
        subject=str(user.id),
        additional_claims={
            "email": user.email,
            "role": user.role.value,
            "username": user.username,
        },
    )


async def register(db: AsyncSession, data: RegisterRequest) -> RegisterResponse:
    """
    Create an unverified student account and send it a verification code.

    Raises:
        AccountExistsError: If the email or username is taken
    """
    if await UserRepository.exists_with_email_or_username(db, data.email, data.username):
        logger.warning(f"Registration rejected, account exists: {data.email}")
        raise AccountExistsError()

    password_hash = await asyncio.to_thread(hash_password, data.password)

    try:
        user = await UserRepository.create(
            db,
            username=data.username,
            email=data.email,
            phone=data.phone,
            password_hash=password_hash,
            role=UserRole.STUDENT,
            grade=data.grade,
            is_verified=False,
        )
    except IntegrityError as e:
        # Lost a race with a concurrent registration
        await db.rollback()
        raise AccountExistsError() from e

    # Commits the new account together with its first challenge
    otp_result = await issue_otp_for_user(db, user)

    return RegisterResponse(
        message="Account created. Please check your email for the verification code.",
        user=UserResponse.model_validate(user),
        otp_delivered_via=otp_result.delivered_via,
    )


async def login(db: AsyncSession, email: str, password: str) -> LoginResponse:
    """
    Authenticate with email and password.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password
        AccountInactiveError: Account deactivated
    """
    user = await UserRepository.get_by_email(db, email)

    if not user:
        logger.warning(f"Login attempt for non-existent email: {email}")
        raise InvalidCredentialsError()

    if not await asyncio.to_thread(verify_password, password, user.password_hash):
        logger.warning(f"Invalid password for user: {user.email}")
        raise InvalidCredentialsError()

    if not user.is_active:
        logger.warning(f"Login attempt for inactive account: {user.email}")
        raise AccountInactiveError()

    user.last_login_at = datetime.now(UTC)
    await db.commit()

    logger.info(f"User logged in: {user.email} (role: {user.role.value})")

    return LoginResponse(
        access_token=_access_token_for(user),
        refresh_token=create_refresh_token(subject=str(user.id)),
        user=UserResponse.model_validate(user),
    )


async def refresh_access_token(db: AsyncSession, refresh_token: str) -> TokenResponse:
    """
    Exchange a refresh token for a new access token.

    Raises:
        InvalidRefreshTokenError: Bad token, wrong type, unknown/inactive user,
            or a token issued before the last password change
    """
    payload = decode_token(refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise InvalidRefreshTokenError()

    try:
        user_id = UUID(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidRefreshTokenError() from e

    user = await UserRepository.get_by_id(db, user_id)
    if user is None or not user.is_active:
        raise InvalidRefreshTokenError()

    if token_issued_before(payload, user.password_changed_at):
        logger.info(f"Refresh token predates password change for user {user.id}")
        raise InvalidRefreshTokenError()

    return TokenResponse(access_token=_access_token_for(user))
