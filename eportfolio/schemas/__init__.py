"""Pydantic schemas module."""
from .auth import (
    AccessTokenResponse,
    AuthResponse,
    AuthSession,
    LoginRequest,
    PasswordChangeRequest,
    ProfileResponse,
    RegisterRequest,
    UserDataResponse,
    UserResponse,
)
from .common import (
    ErrorResponse,
    HealthResponse,
    SuccessResponse,
)

__all__ = [
    # Auth
    "AccessTokenResponse",
    "AuthResponse",
    "AuthSession",
    "LoginRequest",
    "PasswordChangeRequest",
    "ProfileResponse",
    "RegisterRequest",
    "UserDataResponse",
    "UserResponse",
    # Common
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
]
