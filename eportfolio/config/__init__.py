"""Configuration module."""
from .settings import (
    APISettings,
    AuthSettings,
    DatabaseSettings,
    MonitoringSettings,
    Settings,
    get_settings,
)

__all__ = [
    "APISettings",
    "AuthSettings",
    "DatabaseSettings",
    "MonitoringSettings",
    "Settings",
    "get_settings",
]
