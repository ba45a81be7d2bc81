"""API routers."""
from . import auth

__all__ = ["auth"]
