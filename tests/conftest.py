"""
Pytest configuration and fixtures for testing
"""
import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import Settings, settings
from database import Base, get_db
from services.stripe_provider import get_payment_provider
from tests.helpers import FakeStripeProvider

# Create in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# One shared connection so every session sees the same in-memory database
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    future=True,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

# Create test session factory
TestAsyncSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
TEST_WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
async def test_db():
    """
    Fixture that provides an isolated, in-memory SQLite database connection for each test.

    This fixture:
    - Creates all tables before the test runs
    - Yields a clean AsyncSession for the test
    - Drops all tables after the test completes
    """
    # Create all tables
    async with test_engine.begin() as conn:
        # Import models to ensure they're registered with Base
        import database_models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)

    # Create a session for the test
    async with TestAsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # Drop all tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    # The next test runs on a new event loop; give it a new connection
    await test_engine.dispose()


@pytest.fixture
def session_factory():
    """Session factory bound to the test engine, for opening fresh sessions in tests"""
    return TestAsyncSessionLocal


@pytest.fixture
def billing_settings():
    """Settings with both Stripe prices configured"""
    return Settings(
        STRIPE_PRICE_MONTHLY="price_monthly_test",
        STRIPE_PRICE_YEARLY="price_yearly_test",
        STRIPE_SUCCESS_URL="https://app.test/billing/success",
        STRIPE_CANCEL_URL="https://app.test/billing/cancel",
        STRIPE_PORTAL_RETURN_URL="https://app.test/settings",
    )


@pytest.fixture
def fake_provider():
    return FakeStripeProvider()


@pytest.fixture
def app_settings(monkeypatch):
    """Patch the global settings object used by routes and dependencies"""
    monkeypatch.setattr(settings, "jwt_secret_key", TEST_JWT_SECRET)
    monkeypatch.setattr(settings, "stripe_webhook_secret", TEST_WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "stripe_price_monthly", "price_monthly_test")
    monkeypatch.setattr(settings, "stripe_price_yearly", "price_yearly_test")
    monkeypatch.setattr(settings, "stripe_success_url", "https://app.test/billing/success")
    monkeypatch.setattr(settings, "stripe_cancel_url", "https://app.test/billing/cancel")
    monkeypatch.setattr(settings, "stripe_portal_return_url", "https://app.test/settings")
    return settings


@pytest.fixture
async def async_client(test_db, fake_provider, app_settings):
    """
    Async HTTP client fixture with test database and fake Stripe provider overrides.
    Uses httpx.AsyncClient over the ASGI app.
    """
    from main import app

    # Override get_db dependency to use test database
    async def override_get_db():
        async with TestAsyncSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_provider] = lambda: fake_provider

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Cleanup: remove dependency override
    app.dependency_overrides.clear()
