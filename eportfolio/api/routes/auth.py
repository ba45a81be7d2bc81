"""Authentication routes."""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response, status

from ...core.auth import SessionManager
from ...core.exceptions import AuthenticationError
from ...core.security import get_current_principal, get_session_manager, get_token_issuer
from ...core.tokens import TokenClaims, TokenIssuer
from ...schemas.auth import (
    AccessTokenResponse,
    AuthResponse,
    LoginRequest,
    PasswordChangeRequest,
    RegisterRequest,
    UserDataResponse,
)
from ...schemas.common import SuccessResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _set_refresh_cookie(request: Request, response: Response, refresh_token: str) -> None:
    settings = request.app.state.settings
    tokens: TokenIssuer = request.app.state.token_issuer
    response.set_cookie(
        key=settings.api.refresh_cookie_name,
        value=refresh_token,
        max_age=int(tokens.refresh_ttl.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    body: RegisterRequest,
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
):
    """Register a new user."""
    auth = await sessions.register(body.email, body.name, body.password, body.confirm_password)
    _set_refresh_cookie(request, response, auth.refresh_token)
    return AuthResponse(
        message="Registration successful",
        user=auth.user,
        access_token=auth.access_token,
        expires_in=auth.expires_in,
    )


@router.post("/login", response_model=AuthResponse)
async def login_user(
    body: LoginRequest,
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
):
    """Login user and return tokens."""
    auth = await sessions.login(body.email, body.password)
    _set_refresh_cookie(request, response, auth.refresh_token)
    return AuthResponse(
        message="Login successful",
        user=auth.user,
        access_token=auth.access_token,
        expires_in=auth.expires_in,
    )


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_token(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    """Rotate the refresh cookie and return a new access token."""
    presented = request.cookies.get(request.app.state.settings.api.refresh_cookie_name)
    if not presented:
        raise AuthenticationError("Refresh token not found")

    claims = tokens.verify_refresh(presented)
    pair = await sessions.refresh(claims.subject_id, presented)
    _set_refresh_cookie(request, response, pair.refresh_token)
    return AccessTokenResponse(access_token=pair.access_token, expires_in=tokens.access_expires_in)


@router.post("/logout", response_model=SuccessResponse)
async def logout_user(
    request: Request,
    response: Response,
    principal: TokenClaims = Depends(get_current_principal),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Revoke the refresh token and clear its cookie."""
    await sessions.logout(principal.subject_id)
    response.delete_cookie(request.app.state.settings.api.refresh_cookie_name, path="/")
    return SuccessResponse(message="Logged out successfully")


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(
    body: PasswordChangeRequest,
    principal: TokenClaims = Depends(get_current_principal),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Change user password."""
    await sessions.change_password(
        principal.subject_id,
        body.current_password,
        body.new_password,
        body.confirm_password,
    )
    return SuccessResponse(message="Password changed successfully")


@router.get("/profile", response_model=UserDataResponse)
async def get_profile(
    principal: TokenClaims = Depends(get_current_principal),
    sessions: SessionManager = Depends(get_session_manager),
):
    user = await sessions.get_profile(principal.subject_id)
    return UserDataResponse(message="Profile retrieved", data=user)


@router.get("/me", response_model=UserDataResponse)
async def get_current_user_info(
    principal: TokenClaims = Depends(get_current_principal),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Get current user information."""
    user = await sessions.get_profile(principal.subject_id)
    return UserDataResponse(message="Current user retrieved", data=user)


@router.get("/check")
async def check():
    return {
        "message": "Auth API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
