"""
Fixtures for OTP tests.

The service is exercised against an in-memory challenge store that stands in
for the repository module, so multi-step flows (issue -> verify -> reset)
can be tested end to end without a database.
"""

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import pytest

from app.modules.otp.models import OtpChallenge
from app.modules.users.models import User, UserRole

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


class InMemoryChallengeStore:
    """Mirrors app.modules.otp.repository with a dict keyed by user_id."""

    def __init__(self):
        self.challenges: dict[UUID, OtpChallenge] = {}

    async def upsert_challenge(self, db, user_id, code_hash, expires_at):
        self.challenges[user_id] = OtpChallenge(
            user_id=user_id,
            code_hash=code_hash,
            expires_at=expires_at,
            pre_verified=False,
            failed_attempts=0,
        )

    async def get_for_update(self, db, user_id):
        return self.challenges.get(user_id)

    async def mark_pre_verified(self, db, challenge):
        challenge.pre_verified = True

    async def record_failed_attempt(self, db, challenge):
        challenge.failed_attempts += 1
        return challenge.failed_attempts

    async def delete_challenge(self, db, challenge):
        self.challenges.pop(challenge.user_id, None)

    async def delete_expired(self, db, now):
        expired = [uid for uid, c in self.challenges.items() if c.expires_at < now]
        for uid in expired:
            del self.challenges[uid]
        return len(expired)


@pytest.fixture
def sample_user():
    """An unverified student account."""
    user = MagicMock(spec=User)
    user.id = uuid4()
    user.username = "student1"
    user.email = "user@example.com"
    user.phone = "01012345678"
    user.role = UserRole.STUDENT
    user.password_hash = "original-hash"
    user.is_active = True
    user.is_verified = False
    user.password_changed_at = None
    return user


@pytest.fixture
def otp_env(mock_db, sample_user):
    """
    Patch the OTP service's collaborators.

    Yields a namespace with:
        db, user, store, clock (set clock.return_value to move time),
        send_otp (AsyncMock, last code in call_args.kwargs["code"]),
        send_changed (AsyncMock), hash_password (MagicMock)
    """
    store = InMemoryChallengeStore()

    async def get_by_email(db, email):
        if email.strip().lower() == sample_user.email:
            return sample_user
        return None

    users = MagicMock()
    users.get_by_email = AsyncMock(side_effect=get_by_email)

    clock = MagicMock(return_value=T0)

    with (
        patch("app.modules.otp.service.repository", store),
        patch("app.modules.otp.service.UserRepository", users),
        patch("app.modules.otp.service._utcnow", clock),
        patch(
            "app.modules.otp.service.send_otp_email",
            new_callable=AsyncMock,
            return_value=True,
        ) as send_otp,
        patch(
            "app.modules.otp.service.send_password_changed_email",
            new_callable=AsyncMock,
            return_value=True,
        ) as send_changed,
        patch(
            "app.modules.otp.service.hash_password",
            return_value="new-hash",
        ) as hash_password,
    ):
        yield SimpleNamespace(
            db=mock_db,
            user=sample_user,
            store=store,
            clock=clock,
            send_otp=send_otp,
            send_changed=send_changed,
            hash_password=hash_password,
        )
