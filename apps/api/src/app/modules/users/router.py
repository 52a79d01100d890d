"""
Users Router

Admin-only account management.

Endpoints:
- GET /users/{user_id} - Fetch an account
- PATCH /users/{user_id}/status - Activate or deactivate an account
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_roles
from app.core.database import get_db
from app.modules.auth.schemas import UserResponse
from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter()

admin_only = require_roles(UserRole.ADMIN)


class AccountStatusUpdate(BaseModel):
    is_active: bool


async def _get_or_404(db: AsyncSession, user_id: UUID) -> User:
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "ACCOUNT_NOT_FOUND", "message": f"User {user_id} not found"},
        )
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(admin_only),
) -> UserResponse:
    return UserResponse.model_validate(await _get_or_404(db, user_id))


@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: UUID,
    data: AccountStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
) -> UserResponse:
    """
    Activate or deactivate an account. Deactivated accounts cannot log in
    and their existing tokens stop working.

    Raises:
        HTTPException 400: Admin tried to deactivate themselves
        HTTPException 404: Unknown user
    """
    user = await _get_or_404(db, user_id)

    if user.id == admin.id and not data.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "CANNOT_DEACTIVATE_SELF",
                "message": "Admins cannot deactivate their own account.",
            },
        )

    user.is_active = data.is_active
    await db.commit()

    logger.info(f"Admin {admin.id} set is_active={data.is_active} for user {user.id}")
    return UserResponse.model_validate(user)
