"""Database models module."""
from .base import Base
from .profile import Profile
from .user import User, UserRole

__all__ = [
    "Base",
    "Profile",
    "User",
    "UserRole",
]
