"""Authentication schemas."""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from ..models.user import UserRole
from .common import BaseSchema


class ProfileResponse(BaseSchema):
    """Teacher profile fields."""

    id: uuid.UUID = Field(..., description="Profile ID")
    nip: Optional[str] = Field(None, description="Civil servant identification number")
    institution: Optional[str] = Field(None, description="School or institution")
    position: Optional[str] = Field(None, description="Position at the institution")
    phone: Optional[str] = Field(None, description="Phone number")
    address: Optional[str] = Field(None, description="Address")
    avatar_url: Optional[str] = Field(None, description="Avatar URL")
    created_at: datetime = Field(..., description="Profile creation time")
    updated_at: datetime = Field(..., description="Profile last update time")


class UserResponse(BaseSchema):
    """Sanitized user. Credentials and refresh-token state are never part of it."""

    id: uuid.UUID = Field(..., description="User ID")
    email: str = Field(..., description="User email address")
    name: Optional[str] = Field(None, description="User name")
    role: UserRole = Field(..., description="User role")
    email_verified: bool = Field(..., description="Email verification status")
    created_at: datetime = Field(..., description="Account creation time")
    updated_at: datetime = Field(..., description="Account last update time")
    profile: Optional[ProfileResponse] = Field(None, description="Teacher profile")


class RegisterRequest(BaseSchema):
    """Registration request schema."""

    email: str = Field(..., description="User email")
    name: str = Field(..., description="User name")
    password: str = Field(..., description="User password")
    confirm_password: str = Field(..., description="Password confirmation")


class LoginRequest(BaseSchema):
    """Login request schema."""

    email: str = Field(..., description="User email")
    password: str = Field(..., description="User password")


class PasswordChangeRequest(BaseSchema):
    """Password change request schema."""

    current_password: str = Field(..., description="Current password")
    new_password: str = Field(..., description="New password")
    confirm_password: str = Field(..., description="New password confirmation")


class AuthSession(BaseSchema):
    """Result of register/login: the user plus a fresh token pair."""

    user: UserResponse = Field(..., description="User information")
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")


class AuthResponse(BaseSchema):
    """Register/login response body; the refresh token travels as a cookie."""

    message: str = Field(..., description="Result message")
    user: UserResponse = Field(..., description="User information")
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")


class AccessTokenResponse(BaseSchema):
    """Refresh response body."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")


class UserDataResponse(BaseSchema):
    """Wrapper for profile reads."""

    message: str = Field(..., description="Result message")
    data: UserResponse = Field(..., description="User information")
