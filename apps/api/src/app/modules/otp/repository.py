"""
OTP Repository

Database operations for one-time passcode challenges.

Design Principles:
- Issuing is a single atomic upsert keyed on user_id, so concurrent issues
  for the same account can never leave two live codes
- Reads used by verify/reset take a row lock (SELECT ... FOR UPDATE) that is
  held until the caller commits
- No commits here; the service layer owns transaction boundaries
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import OtpChallenge


async def upsert_challenge(
    db: AsyncSession,
    user_id: UUID,
    code_hash: str,
    expires_at: datetime,
) -> None:
    """
    Create or overwrite the account's challenge.

    Any previous code, pre-verification flag and attempt counter are replaced.
    """
    values = {
        "code_hash": code_hash,
        "expires_at": expires_at,
        "pre_verified": False,
        "failed_attempts": 0,
    }
    stmt = insert(OtpChallenge).values(user_id=user_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[OtpChallenge.user_id],
        set_=values,
    )
    await db.execute(stmt)


async def get_for_update(db: AsyncSession, user_id: UUID) -> OtpChallenge | None:
    """Get the account's challenge, locking the row for the rest of the transaction."""
    result = await db.execute(
        select(OtpChallenge).where(OtpChallenge.user_id == user_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def mark_pre_verified(db: AsyncSession, challenge: OtpChallenge) -> None:
    """Flag the challenge as matched; the code stays live for the reset step."""
    challenge.pre_verified = True
    await db.flush()


async def record_failed_attempt(db: AsyncSession, challenge: OtpChallenge) -> int:
    """Increment the failed attempt counter and return the new value."""
    challenge.failed_attempts += 1
    await db.flush()
    return challenge.failed_attempts


async def delete_challenge(db: AsyncSession, challenge: OtpChallenge) -> None:
    """Remove the challenge: code, expiry and pre-verification go together."""
    await db.delete(challenge)
    await db.flush()


async def delete_expired(db: AsyncSession, now: datetime) -> int:
    """Delete every challenge that expired before ``now``. Returns the row count."""
    result = await db.execute(delete(OtpChallenge).where(OtpChallenge.expires_at < now))
    return result.rowcount or 0
