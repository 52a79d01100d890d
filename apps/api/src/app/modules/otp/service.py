"""
OTP Service Layer

Business logic for the one-time passcode flow used by email verification and
password reset.

This module implements:
1. Issuance:
   - Generate a 6-digit code (uniform over 100000-999999)
   - Store its hash with a 10-minute expiry, overwriting any previous code
   - Email the code; delivery failures are logged and never fail the request

2. Verification:
   - Match the submitted code against the stored hash
   - Mark the account verified and the challenge pre-verified
   - Keep the challenge alive so the reset step can consume it

3. Password reset:
   - Accept a pre-verified challenge (re-checking the code) or match it fresh
   - Replace the password hash and delete the challenge in one commit

State transitions:
    no challenge --issue--> active --verify--> pre-verified --reset--> no challenge
    active / pre-verified --expiry detected--> no challenge
    active / pre-verified --max failed attempts--> no challenge

Security considerations:
- Codes come from the ``secrets`` CSPRNG and are stored as SHA-256 digests
- Hash comparison is constant-time
- Failed matches are counted; reaching the limit burns the challenge
- Verify and reset hold a row lock on the challenge until they commit
- Codes are never logged or returned to the client
"""

import asyncio
import hashlib
import logging
import re
import secrets
from datetime import UTC, datetime, timedelta
from typing import NoReturn

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.email import send_otp_email, send_password_changed_email
from app.core.security import hash_password
from app.modules.otp import repository
from app.modules.otp.models import OtpChallenge
from app.modules.otp.schemas import (
    DeliveryChannel,
    ResetPasswordResponse,
    SendOtpResponse,
    VerifyOtpResponse,
)
from app.modules.users.models import User
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

# Constants
OTP_CODE_PATTERN = re.compile(r"^[0-9]{6}$")
OTP_CODE_MIN = 100000
OTP_CODE_SPAN = 900000
MIN_PASSWORD_LENGTH = 6


class OtpServiceError(Exception):
    """Base exception for OTP service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class AccountNotFoundError(OtpServiceError):
    """Raised when no account matches the email."""

    def __init__(self):
        super().__init__(
            message="No account is associated with this email address.",
            error_code="ACCOUNT_NOT_FOUND",
            status_code=404,
        )


class InvalidOtpInputError(OtpServiceError):
    """Raised for a malformed code, a weak password, or a confirmation mismatch."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_INPUT",
            status_code=400,
        )


class InvalidOtpError(OtpServiceError):
    """Raised when the submitted code doesn't match the active challenge."""

    def __init__(self):
        super().__init__(
            message="The verification code is incorrect.",
            error_code="INVALID_OTP",
            status_code=400,
        )


class OtpExpiredError(OtpServiceError):
    """Raised when the challenge has passed its expiry."""

    def __init__(self):
        super().__init__(
            message="The verification code has expired. Please request a new one.",
            error_code="OTP_EXPIRED",
            status_code=400,
        )


class TooManyOtpAttemptsError(OtpServiceError):
    """Raised when the failed attempt limit burns the challenge."""

    def __init__(self):
        super().__init__(
            message="Too many incorrect attempts. Please request a new code.",
            error_code="TOO_MANY_ATTEMPTS",
            status_code=429,
        )


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _hash_code(code: str) -> str:
    """Hex-encoded SHA-256 digest of a code, as stored in the database."""
    return hashlib.sha256(code.encode()).hexdigest()


def _generate_code() -> str:
    """Return a uniformly random 6-digit code in 100000-999999."""
    return str(OTP_CODE_MIN + secrets.randbelow(OTP_CODE_SPAN))


def _code_matches(code: str, challenge: OtpChallenge) -> bool:
    return secrets.compare_digest(_hash_code(code), challenge.code_hash)


def _is_expired(challenge: OtpChallenge) -> bool:
    return _utcnow() > challenge.expires_at


def _validate_code_format(code: str) -> None:
    if not OTP_CODE_PATTERN.fullmatch(code):
        raise InvalidOtpInputError("The verification code must be exactly 6 digits.")


def _validate_new_password(new_password: str, confirm_password: str) -> None:
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise InvalidOtpInputError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )
    if new_password != confirm_password:
        raise InvalidOtpInputError("Passwords do not match.")


async def _get_account(db: AsyncSession, email: str) -> User:
    user = await UserRepository.get_by_email(db, email)
    if not user:
        logger.warning(f"OTP request for non-existent email: {email}")
        raise AccountNotFoundError()
    return user


async def _discard_expired(db: AsyncSession, challenge: OtpChallenge, user: User) -> None:
    """Delete an expired challenge, commit the cleanup, then raise."""
    await repository.delete_challenge(db, challenge)
    await db.commit()
    logger.warning(f"Expired OTP challenge cleared for user {user.id}")
    raise OtpExpiredError()


async def _match_challenge(
    db: AsyncSession,
    challenge: OtpChallenge | None,
    code: str,
    user: User,
) -> OtpChallenge:
    """
    Match a code against the active challenge, counting failures.

    Raises:
        InvalidOtpError: If there is no challenge or the code doesn't match
        TooManyOtpAttemptsError: If this failure reached the attempt limit
    """
    if challenge is None:
        logger.warning(f"OTP check for user {user.id} with no active challenge")
        raise InvalidOtpError()

    if _code_matches(code, challenge):
        return challenge

    await _reject_mismatch(db, challenge, user)


async def _reject_mismatch(db: AsyncSession, challenge: OtpChallenge, user: User) -> NoReturn:
    """
    Count a failed match and raise. The code and pre-verification flag are
    left as they are unless this failure reaches the attempt limit.

    Raises:
        InvalidOtpError: Below the attempt limit
        TooManyOtpAttemptsError: The limit was reached and the challenge deleted
    """
    attempts = await repository.record_failed_attempt(db, challenge)
    if attempts >= settings.otp_max_attempts:
        await repository.delete_challenge(db, challenge)
        await db.commit()
        logger.warning(f"OTP challenge burned for user {user.id} after {attempts} failures")
        raise TooManyOtpAttemptsError()

    await db.commit()
    logger.warning(f"OTP mismatch for user {user.id} (attempt {attempts})")
    raise InvalidOtpError()


async def issue_otp_for_user(db: AsyncSession, user: User) -> SendOtpResponse:
    """
    Issue a fresh code for an already-loaded account and email it.

    Commits the session, so any pending changes to ``user`` (for example a
    just-created registration) are persisted together with the challenge.

    Args:
        db: Database session
        user: The account receiving the code

    Returns:
        SendOtpResponse describing how the code was delivered
    """
    code = _generate_code()
    expires_at = _utcnow() + timedelta(minutes=settings.otp_expiry_minutes)

    await repository.upsert_challenge(db, user.id, _hash_code(code), expires_at)
    await db.commit()
    logger.info(f"Issued OTP challenge for user {user.id}")

    # Delivery failure leaves the stored code valid
    delivered_via = DeliveryChannel.FALLBACK
    try:
        email_sent = await send_otp_email(
            to_email=user.email,
            username=user.username,
            code=code,
            expires_in_minutes=settings.otp_expiry_minutes,
        )
        if email_sent:
            delivered_via = DeliveryChannel.EMAIL
        else:
            logger.error(f"Failed to send OTP email to user {user.id}")
    except Exception as e:
        logger.error(f"Exception sending OTP email to user {user.id}: {e}")

    return SendOtpResponse(
        delivered_via=delivered_via,
        message="A verification code has been sent to your email address.",
        expires_in_seconds=settings.otp_expiry_minutes * 60,
    )


async def issue_otp(db: AsyncSession, email: str) -> SendOtpResponse:
    """
    Issue a verification code for the account registered under ``email``.

    Raises:
        AccountNotFoundError: If no account matches the email
    """
    user = await _get_account(db, email)
    return await issue_otp_for_user(db, user)


async def verify_otp(db: AsyncSession, email: str, code: str) -> VerifyOtpResponse:
    """
    Verify a code without consuming it.

    On success the account becomes verified and the challenge is flagged
    pre-verified; it stays valid for one following password reset.

    Raises:
        InvalidOtpInputError: If the code is not 6 digits
        AccountNotFoundError: If no account matches the email
        InvalidOtpError: If there is no active code or it doesn't match
        OtpExpiredError: If the code expired (the challenge is cleared)
        TooManyOtpAttemptsError: If the failure limit was reached
    """
    _validate_code_format(code)
    user = await _get_account(db, email)

    challenge = await repository.get_for_update(db, user.id)
    challenge = await _match_challenge(db, challenge, code, user)

    if _is_expired(challenge):
        await _discard_expired(db, challenge, user)

    user.is_verified = True
    await repository.mark_pre_verified(db, challenge)
    await db.commit()

    logger.info(f"OTP verified for user {user.id}")
    return VerifyOtpResponse(account_id=user.id)


async def reset_password_after_otp(
    db: AsyncSession,
    email: str,
    code: str,
    new_password: str,
    confirm_password: str,
) -> ResetPasswordResponse:
    """
    Set a new password, consuming the account's code.

    Works with a challenge already pre-verified by ``verify_otp`` or a fresh
    one; either way the same code must be submitted and a mismatch counts
    toward the attempt limit. The password write and the challenge deletion
    share one commit.

    Raises:
        InvalidOtpInputError: Bad code format, short password, or mismatched confirmation
        AccountNotFoundError: If no account matches the email
        InvalidOtpError: If there is no active code or it doesn't match
        OtpExpiredError: If the code expired (the challenge is cleared)
        TooManyOtpAttemptsError: If the failure limit was reached
    """
    _validate_code_format(code)
    _validate_new_password(new_password, confirm_password)
    user = await _get_account(db, email)

    challenge = await repository.get_for_update(db, user.id)

    # Pre-verified or not, the code must be re-submitted and wrong guesses count
    challenge = await _match_challenge(db, challenge, code, user)

    if _is_expired(challenge):
        await _discard_expired(db, challenge, user)

    user.password_hash = await asyncio.to_thread(hash_password, new_password)
    user.password_changed_at = _utcnow()
    await repository.delete_challenge(db, challenge)
    await db.commit()

    logger.info(f"Password reset via OTP for user {user.id}")

    try:
        await send_password_changed_email(to_email=user.email, username=user.username)
    except Exception as e:
        logger.error(f"Failed to send password changed notice to user {user.id}: {e}")

    return ResetPasswordResponse()
