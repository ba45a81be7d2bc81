"""Session manager: registration, login, refresh-token rotation and logout."""
import asyncio
import hmac
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar, Union

import structlog
from sqlalchemy.exc import IntegrityError

from ..database.user_store import UserStore
from ..models.user import User, UserRole
from ..schemas.auth import AuthSession, UserResponse
from .exceptions import (
    AuthenticationError,
    BaseAPIException,
    ConflictError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from .logging import SecurityLogger
from .passwords import (
    PasswordHasher,
    is_strong_password,
    normalize_email,
    validate_email,
    validate_name,
    validate_password_strength,
)
from .retry import QueryExecutor
from .tokens import TokenIssuer, TokenPair, utcnow

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Same message for unknown email and wrong password.
INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Refresh token is invalid"
EXPIRED_REFRESH_TOKEN = "Refresh token has expired"
EMAIL_TAKEN = "Email is already registered"

UserId = Union[str, uuid.UUID]


def _parse_user_id(user_id: UserId) -> Optional[uuid.UUID]:
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except (TypeError, ValueError):
        return None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _tokens_match(stored: Optional[str], presented: Optional[str]) -> bool:
    if not stored or not presented:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


class SessionManager:
    """Authoritative owner of each user's refresh-token session.

    A user is authenticated while the row holds a refresh token that has not
    expired. Login and refresh overwrite it, so only the newest token works;
    logout clears it.
    """

    def __init__(
        self,
        users: UserStore,
        tokens: TokenIssuer,
        hasher: PasswordHasher,
        executor: QueryExecutor,
        revoke_on_password_change: bool = True,
    ):
        self.users = users
        self.tokens = tokens
        self.hasher = hasher
        self.executor = executor
        self.revoke_on_password_change = revoke_on_password_change

    async def _run(self, operation: Callable[[], Awaitable[T]], operation_name: str) -> T:
        try:
            return await self.executor.execute(operation, operation_name)
        except Exception as e:
            if not isinstance(e, BaseAPIException) and self.executor.is_transient(e):
                logger.error("Datastore retries exhausted", operation=operation_name, error=str(e))
                raise TransientStoreError() from e
            raise

    async def _start_session(self, user: User) -> TokenPair:
        pair = self.tokens.issue(str(user.id), user.email, UserRole(user.role).value)
        expires_at = self.tokens.refresh_expires_at()
        await self._run(
            lambda: self.users.set_refresh_token(user.id, pair.refresh_token, expires_at),
            "set_refresh_token",
        )
        return pair

    def _auth_session(self, user: User, pair: TokenPair) -> AuthSession:
        return AuthSession(
            user=UserResponse.model_validate(user),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=self.tokens.access_expires_in,
        )

    async def register(
        self,
        email: str,
        name: str,
        password: str,
        password_confirmation: str,
    ) -> AuthSession:
        """Create a user with an empty profile and open its first session."""
        if password != password_confirmation:
            raise ValidationError("Passwords do not match", details={"field": "confirm_password"})
        normalized_email = validate_email(email)
        clean_name = validate_name(name)
        validate_password_strength(password)

        existing = await self._run(lambda: self.users.get_by_email(normalized_email), "get_by_email")
        if existing is not None:
            raise ConflictError(EMAIL_TAKEN)

        password_hash = await asyncio.to_thread(self.hasher.hash_password, password)
        try:
            user = await self._run(
                lambda: self.users.create_with_profile(
                    email=normalized_email,
                    name=clean_name,
                    password_hash=password_hash,
                ),
                "create_with_profile",
            )
        except IntegrityError as e:
            # Lost a race with a concurrent registration of the same email.
            raise ConflictError(EMAIL_TAKEN) from e

        pair = await self._start_session(user)
        SecurityLogger.log_registration(user_id=str(user.id), email=user.email)
        return self._auth_session(user, pair)

    async def login(self, email: str, password: str) -> AuthSession:
        """Check credentials and replace any existing session with a new one."""
        if not email or not password:
            raise ValidationError("Email and password are required")

        normalized_email = normalize_email(email)
        user = await self._run(lambda: self.users.get_by_email(normalized_email), "get_by_email")
        if user is None:
            SecurityLogger.log_login_attempt(
                email=normalized_email, success=False, failure_reason="unknown_email"
            )
            raise AuthenticationError(INVALID_CREDENTIALS)

        password_valid = await asyncio.to_thread(
            self.hasher.verify_password, password, user.password_hash
        )
        if not password_valid:
            SecurityLogger.log_login_attempt(
                email=normalized_email,
                success=False,
                user_id=str(user.id),
                failure_reason="wrong_password",
            )
            raise AuthenticationError(INVALID_CREDENTIALS)

        pair = await self._start_session(user)
        SecurityLogger.log_login_attempt(email=normalized_email, success=True, user_id=str(user.id))
        return self._auth_session(user, pair)

    async def refresh(self, user_id: UserId, presented_refresh_token: str) -> TokenPair:
        """Exchange the current refresh token for a new pair.

        The stored token is swapped with a conditional update, so when two
        calls race with the same token only one of them wins.
        """
        uid = _parse_user_id(user_id)
        user = None
        if uid is not None:
            user = await self._run(lambda: self.users.get_by_id(uid), "get_by_id")

        if user is None or not _tokens_match(user.refresh_token, presented_refresh_token):
            SecurityLogger.log_refresh_rejected(user_id=str(user_id), reason="mismatch")
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        expires_at = _as_utc(user.refresh_token_expires_at)
        if expires_at is None or expires_at <= utcnow():
            SecurityLogger.log_refresh_rejected(user_id=str(user_id), reason="expired")
            raise AuthenticationError(EXPIRED_REFRESH_TOKEN)

        pair = self.tokens.issue(str(user.id), user.email, UserRole(user.role).value)
        new_expires_at = self.tokens.refresh_expires_at()
        rotated = await self._run(
            lambda: self.users.rotate_refresh_token(
                uid, presented_refresh_token, pair.refresh_token, new_expires_at
            ),
            "rotate_refresh_token",
        )
        if not rotated:
            SecurityLogger.log_refresh_rejected(user_id=str(user_id), reason="superseded")
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        SecurityLogger.log_token_refreshed(user_id=str(user.id))
        return pair

    async def logout(self, user_id: UserId) -> None:
        """Revoke the stored refresh token. Safe to call repeatedly."""
        uid = _parse_user_id(user_id)
        if uid is None:
            return
        await self._run(lambda: self.users.clear_refresh_token(uid), "clear_refresh_token")
        SecurityLogger.log_logout(user_id=str(uid))

    async def change_password(
        self,
        user_id: UserId,
        current_password: str,
        new_password: str,
        confirmation: str,
    ) -> None:
        uid = _parse_user_id(user_id)
        user = None
        if uid is not None:
            user = await self._run(lambda: self.users.get_by_id(uid), "get_by_id")
        if user is None:
            raise NotFoundError("User not found")

        password_valid = await asyncio.to_thread(
            self.hasher.verify_password, current_password or "", user.password_hash
        )
        if not password_valid:
            raise AuthenticationError("Current password is incorrect")

        if new_password != confirmation:
            raise ValidationError("New passwords do not match", details={"field": "confirm_password"})
        validate_password_strength(new_password, field="new_password")

        values = {"password_hash": await asyncio.to_thread(self.hasher.hash_password, new_password)}
        if self.revoke_on_password_change:
            values.update(refresh_token=None, refresh_token_expires_at=None)

        await self._run(lambda: self.users.update_fields(uid, **values), "update_password")
        SecurityLogger.log_password_changed(
            user_id=str(uid), sessions_revoked=self.revoke_on_password_change
        )

    async def get_profile(self, user_id: UserId) -> UserResponse:
        """Sanitized user with profile."""
        uid = _parse_user_id(user_id)
        user = None
        if uid is not None:
            user = await self._run(lambda: self.users.get_by_id(uid), "get_by_id")
        if user is None:
            raise NotFoundError("User not found")
        return UserResponse.model_validate(user)

    async def email_exists(self, email: str) -> bool:
        normalized_email = normalize_email(email)
        if not normalized_email:
            return False
        user = await self._run(lambda: self.users.get_by_email(normalized_email), "get_by_email")
        return user is not None

    @staticmethod
    def validate_password_strength(password: str) -> bool:
        return is_strong_password(password)
