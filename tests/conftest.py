"""Pytest fixtures for testing."""
import os

# Must be set before any app imports that trigger Settings validation.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.passwords import get_password_hasher, set_password_hasher  # noqa: E402
from core.rate_limit_store import InMemoryRateLimitStore  # noqa: E402
from core.rate_limiter import RateLimiter, set_rate_limiter  # noqa: E402
from core.tokens import get_token_issuer, set_token_issuer  # noqa: E402
from models.base import Base  # noqa: E402
from models.user import User  # noqa: E402
from services import user_service  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def reset_auth_state() -> Generator[None]:
    """Give every test a fresh rate limiter and rebuild issuer/hasher from settings."""
    set_rate_limiter(RateLimiter(InMemoryRateLimitStore()))
    set_token_issuer(None)
    set_password_hasher(None)
    yield
    set_rate_limiter(None)
    set_token_issuer(None)
    set_password_hasher(None)


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory SQLite engine with the schema for one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the per-test database."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session override."""
    from api.main import app  # noqa: PLC0415
    from db.session import get_async_session  # noqa: PLC0415

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory that inserts a user with a real bcrypt hash."""

    async def _make_user(
        username: str = "alice",
        email: str = "alice@example.com",
        password: str = TEST_PASSWORD,
    ) -> User:
        return await user_service.create_user(
            db_session, username, email, get_password_hasher().hash(password),
        )

    return _make_user


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Build an Authorization header carrying a fresh access token for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        token = get_token_issuer().issue_access_token(user.id, user.username)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def user_password() -> str:
    """Plaintext password of users made by make_user."""
    return TEST_PASSWORD


@pytest.fixture
async def user(make_user: Callable[..., Awaitable[User]]) -> User:
    """A registered user."""
    return await make_user()


@pytest.fixture
async def authed_client(
    client: AsyncClient,
    user: User,
    auth_headers: Callable[[User], dict[str, str]],
) -> AsyncClient:
    """Test client that sends the user's access token on every request."""
    client.headers.update(auth_headers(user))
    return client
