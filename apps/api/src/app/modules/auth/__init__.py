"""Authentication module."""

from app.modules.auth.schemas import LoginRequest, LoginResponse, TokenResponse

__all__ = ["LoginRequest", "LoginResponse", "TokenResponse"]
