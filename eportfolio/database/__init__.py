"""Database module."""
from .engine import Database
from .user_store import UserStore

__all__ = [
    "Database",
    "UserStore",
]
