"""Test configuration and fixtures."""
import httpx
import pytest
import pytest_asyncio

from eportfolio.config import AuthSettings, DatabaseSettings, MonitoringSettings, Settings
from eportfolio.core.passwords import PasswordHasher
from eportfolio.core.tokens import TokenIssuer
from eportfolio.database import Database
from eportfolio.main import build_session_manager, create_app

TEST_ACCESS_SECRET = "test-access-secret"
TEST_REFRESH_SECRET = "test-refresh-secret"
TEST_PASSWORD = "Testpass123"


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        environment="test",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        auth=AuthSettings(
            access_secret=TEST_ACCESS_SECRET,
            refresh_secret=TEST_REFRESH_SECRET,
            bcrypt_rounds=4,
            retry_backoff_seconds=0,
        ),
        monitoring=MonitoringSettings(log_level="WARNING", log_json=False),
    )


@pytest.fixture
def token_issuer(settings):
    return TokenIssuer.from_settings(settings.auth)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest_asyncio.fixture
async def database(settings):
    """Create tables for one test and dispose the engine afterwards."""
    db = Database(settings.database)
    await db.init_models()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def session_manager(settings, database):
    return build_session_manager(settings, database)


@pytest_asyncio.fixture
async def registered(session_manager):
    """A user registered through the session manager."""
    return await session_manager.register(
        "teacher@example.com", "Test Teacher", TEST_PASSWORD, TEST_PASSWORD
    )


@pytest_asyncio.fixture
async def client(settings, database):
    """HTTP client bound to an app sharing the test database."""
    app = create_app(settings, database)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def auth_headers(registered):
    """Create authorization headers for the registered user."""
    return {"Authorization": f"Bearer {registered.access_token}"}
