"""
OTP Models

Short-lived one-time passcode challenges used for email verification and
password reset. Each account has at most one challenge row; issuing a new
code overwrites it, and consuming or expiring it deletes the row.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class OtpChallenge(Base):
    """
    The active one-time passcode for an account.

    The plain code is only ever emailed; ``code_hash`` holds its SHA-256
    digest. ``pre_verified`` is set once the code has been matched by the
    verify step and is waiting to be consumed by a password reset.
    """

    __tablename__ = "otp_challenges"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # One challenge per account
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pre_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("ix_otp_challenges_expires_at", "expires_at"),)

    def __repr__(self) -> str:
        return (
            f"<OtpChallenge(user_id={self.user_id}, expires_at={self.expires_at}, "
            f"pre_verified={self.pre_verified})>"
        )
