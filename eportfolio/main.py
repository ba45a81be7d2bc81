"""Main FastAPI application."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from .api.routes import auth
from .config import Settings, get_settings
from .core.auth import SessionManager
from .core.logging import configure_logging
from .core.passwords import PasswordHasher
from .core.retry import QueryExecutor
from .core.tokens import TokenIssuer
from .database import Database, UserStore
from .schemas.common import HealthResponse


def build_session_manager(settings: Settings, database: Database) -> SessionManager:
    """Wire the auth components for one application instance."""
    executor = QueryExecutor(
        reconnect=database.reconnect,
        max_attempts=settings.auth.retry_attempts,
        backoff_seconds=settings.auth.retry_backoff_seconds,
    )
    return SessionManager(
        users=UserStore(database),
        tokens=TokenIssuer.from_settings(settings.auth),
        hasher=PasswordHasher(rounds=settings.auth.bcrypt_rounds),
        executor=executor,
        revoke_on_password_change=settings.auth.revoke_on_password_change,
    )


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Token secrets are checked here, so a misconfigured deployment fails
    before it serves a request.
    """
    settings = settings or get_settings()
    database = database or Database(settings.database)
    session_manager = build_session_manager(settings, database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.monitoring.log_level, settings.monitoring.log_json)
        await database.init_models()
        yield
        await database.close()

    app = FastAPI(
        title=settings.api.title,
        description=settings.api.description,
        version=settings.api.version,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.database = database
    app.state.session_manager = session_manager
    app.state.token_issuer = session_manager.tokens

    # Add middleware
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth.router, prefix=settings.api.prefix)

    # Health check endpoint
    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(status="healthy", version=settings.api.version)

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "eportfolio.main:create_app",
        factory=True,
        host=_settings.api.host,
        port=_settings.api.port,
        reload=_settings.api.reload,
    )
