"""Request authentication dependencies and the resource ownership contract."""
import uuid
from typing import Any, Optional, Type, TypeVar

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import UserRole
from .auth import SessionManager
from .exceptions import AuthenticationError, AuthorizationError, NotFoundError
from .logging import SecurityLogger
from .tokens import TokenClaims, TokenIssuer

ModelT = TypeVar("ModelT")

# Security scheme
security = HTTPBearer(auto_error=False)


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> TokenClaims:
    """Claims of a valid bearer access token."""
    if credentials is None:
        SecurityLogger.log_unauthorized_access(
            path=request.url.path,
            method=request.method,
            ip_address=request.client.host if request.client else None,
            reason="missing_token",
        )
        raise AuthenticationError("Not authenticated")

    try:
        return tokens.verify_access(credentials.credentials)
    except AuthenticationError:
        SecurityLogger.log_unauthorized_access(
            path=request.url.path,
            method=request.method,
            ip_address=request.client.host if request.client else None,
            reason="invalid_token",
        )
        raise


def require_role(*allowed_roles: UserRole):
    """Dependency to require one of the given roles. SUPER_ADMIN always passes."""
    allowed = {UserRole(role).value for role in allowed_roles} | {UserRole.SUPER_ADMIN.value}

    async def check_role(principal: TokenClaims = Depends(get_current_principal)) -> TokenClaims:
        if principal.role not in allowed:
            raise AuthorizationError("Insufficient permissions")
        return principal

    return check_role


def ensure_owner(resource: Any, principal_id: Any, resource_name: str = "Resource") -> Any:
    """Return ``resource`` if ``principal_id`` owns it.

    Existence is checked first: a missing resource is NotFoundError for every
    caller, and only an existing one can be AuthorizationError.
    """
    if resource is None:
        raise NotFoundError(f"{resource_name} not found")
    if str(getattr(resource, "user_id")) != str(principal_id):
        raise AuthorizationError(f"You do not have access to this {resource_name.lower()}")
    return resource


async def get_owned_or_404(
    session: AsyncSession,
    model: Type[ModelT],
    resource_id: Any,
    principal_id: Any,
) -> ModelT:
    """Load ``model`` by primary key and apply the ownership check."""
    resource = None
    try:
        key = resource_id if isinstance(resource_id, uuid.UUID) else uuid.UUID(str(resource_id))
    except (TypeError, ValueError):
        key = None
    if key is not None:
        resource = await session.get(model, key)
    return ensure_owner(resource, principal_id, model.__name__)
