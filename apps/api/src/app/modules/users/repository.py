"""
User Repository

Database operations for account management.
"""

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Accounts are keyed by lowercase, trimmed email."""
    return email.strip().lower()


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        username: str,
        email: str,
        phone: str,
        password_hash: str,
        role: UserRole = UserRole.STUDENT,
        grade: str | None = None,
        is_active: bool = True,
        is_verified: bool = False,
    ) -> User:
        """
        Create a new user record.

        The row is flushed (so it has an ID) but not committed; the caller
        owns the transaction.

        Returns:
            Created User instance
        """
        user = User(
            username=username,
            email=normalize_email(email),
            phone=phone,
            password_hash=password_hash,
            role=role,
            grade=grade,
            is_active=is_active,
            is_verified=is_verified,
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} - {user.email} ({user.role.value})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: str | UUID) -> User | None:
        """Get a user by ID."""
        if isinstance(user_id, str):
            user_id = UUID(user_id)
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """
        Get a user by email address (case-insensitive).

        Args:
            db: Database session
            email: Email address in any case

        Returns:
            User instance or None if not found
        """
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    @staticmethod
    async def exists_with_email_or_username(db: AsyncSession, email: str, username: str) -> bool:
        """Check whether the email or username is already taken."""
        result = await db.execute(
            select(User.id).where(
                or_(User.email == normalize_email(email), User.username == username)
            )
        )
        return result.first() is not None
