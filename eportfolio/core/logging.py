"""Logging configuration and utilities."""
import logging
import sys
from typing import Any, Dict

import structlog
from structlog.stdlib import LoggerFactory


def configure_logging(log_level: str = "INFO", json_logs: bool = True):
    """Configure structured logging."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Set third-party log levels
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


class RequestLogger:
    """Request logging utility."""

    @staticmethod
    def log_request(
        method: str,
        path: str,
        request_id: str = None,
        extra_data: Dict[str, Any] = None
    ):
        """Log incoming request."""
        logger = structlog.get_logger("api.request")
        logger.info(
            "Request started",
            method=method,
            path=path,
            request_id=request_id,
            **(extra_data or {})
        )

    @staticmethod
    def log_response(
        method: str,
        path: str,
        status_code: int,
        response_time_ms: float,
        request_id: str = None,
    ):
        """Log response."""
        logger = structlog.get_logger("api.response")
        logger.info(
            "Request completed",
            method=method,
            path=path,
            status_code=status_code,
            response_time_ms=response_time_ms,
            request_id=request_id,
        )


class SecurityLogger:
    """Security event logging utility."""

    @staticmethod
    def log_login_attempt(
        email: str,
        success: bool,
        user_id: str = None,
        failure_reason: str = None
    ):
        """Log login attempt."""
        logger = structlog.get_logger("security.auth")
        log = logger.info if success else logger.warning
        log(
            "Login attempt",
            event_type="login_attempt",
            email=email,
            success=success,
            user_id=user_id,
            failure_reason=failure_reason
        )

    @staticmethod
    def log_registration(user_id: str, email: str):
        logger = structlog.get_logger("security.auth")
        logger.info("User registered", event_type="registration", user_id=user_id, email=email)

    @staticmethod
    def log_token_refreshed(user_id: str):
        logger = structlog.get_logger("security.session")
        logger.info("Token refreshed", event_type="token_refreshed", user_id=user_id)

    @staticmethod
    def log_refresh_rejected(user_id: str, reason: str):
        """Log a refused refresh-token exchange."""
        logger = structlog.get_logger("security.session")
        logger.warning(
            "Refresh token rejected",
            event_type="refresh_rejected",
            user_id=user_id,
            reason=reason
        )

    @staticmethod
    def log_logout(user_id: str):
        logger = structlog.get_logger("security.session")
        logger.info("User logged out", event_type="logout", user_id=user_id)

    @staticmethod
    def log_password_changed(user_id: str, sessions_revoked: bool):
        logger = structlog.get_logger("security.auth")
        logger.info(
            "Password changed",
            event_type="password_changed",
            user_id=user_id,
            sessions_revoked=sessions_revoked
        )

    @staticmethod
    def log_unauthorized_access(
        path: str,
        method: str,
        ip_address: str = None,
        reason: str = None
    ):
        """Log unauthorized access attempt."""
        logger = structlog.get_logger("security.access")
        logger.warning(
            "Unauthorized access attempt",
            event_type="unauthorized_access",
            path=path,
            method=method,
            ip_address=ip_address,
            reason=reason
        )
