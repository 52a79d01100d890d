"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
This module handles JWT token validation (bearer header or the
``access_token`` cookie) and role-based access control using the security
utilities defined in security.py.
"""

import logging
from collections.abc import Callable, Coroutine
from typing import Any
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import decode_token, token_issued_before
from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"

# Security scheme for OpenAPI documentation; the cookie is the fallback
security = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token for authentication",
)


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency that validates the access token and loads the user.

    Usage:
        @router.get("/me")
        async def me(user: User = Depends(get_current_user)):
            ...

    Raises:
        HTTPException 401: Missing, invalid or expired token, unknown user,
            or a token issued before the last password change
        HTTPException 403: Account deactivated
    """
    token = _extract_token(request, credentials)
    if not token:
        raise _unauthorized("NOT_AUTHENTICATED", "Please log in to access this resource.")

    payload = decode_token(token)
    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    if payload.get("type") != "access":
        logger.warning(f"Invalid token type: {payload.get('type')}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id = UUID(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e

    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        logger.warning(f"Token references missing user {user_id}")
        raise _unauthorized("USER_NOT_FOUND", "The account for this token no longer exists.")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ACCOUNT_INACTIVE",
                "message": "Your account has been deactivated.",
            },
        )

    if token_issued_before(payload, user.password_changed_at):
        logger.info(f"Rejected token issued before password change for user {user.id}")
        raise _unauthorized(
            "PASSWORD_CHANGED", "Your password was changed recently. Please log in again."
        )

    return user


def require_roles(*roles: UserRole) -> Callable[..., Coroutine[Any, Any, User]]:
    """
    Build a dependency that only admits users holding one of ``roles``.

    Usage:
        @router.get("/admin/reports")
        async def reports(user: User = Depends(require_roles(UserRole.ADMIN))):
            ...
    """
    allowed = set(roles)

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.warning(
                f"Access denied: user {user.id} has role '{user.role.value}', "
                f"requires one of {sorted(r.value for r in allowed)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "FORBIDDEN_ROLE",
                    "message": "You do not have permission to perform this action.",
                },
            )
        return user

    return _dependency


__all__ = [
    "ACCESS_TOKEN_COOKIE",
    "get_current_user",
    "require_roles",
]
