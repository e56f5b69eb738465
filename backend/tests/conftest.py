import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "touchdown-test-logs"))

import httpx
import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Base, get_db
from app.models.credential import ProviderCredential
from app.schemas.booking import BookingResult
from app.services.booking_engine import BookingEngine, get_booking_engine
from app.services.credential_resolver import CredentialResolver
from app.services.providers.base import ProviderAdapter
from app.services.providers.registry import ProviderRegistry
from app.services.rate_limiter import InMemoryRateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class SpyAdapter(ProviderAdapter):
    """Adapter double that records every call and returns a canned result or error."""

    name = "acme"

    def __init__(self, error: Exception | None = None):
        super().__init__()
        self.calls = []
        self.error = error

    async def book(self, credential, request):
        self.calls.append((credential, request))
        if self.error:
            raise self.error
        return BookingResult(
            success=True,
            booking_reference=f"ACME{len(self.calls):04d}",
            provider=self.name,
            status="confirmed",
            total_price=512.40,
            currency="EUR",
        )


def make_payload(**overrides) -> dict:
    payload = {
        "flightId": "F1",
        "provider": "mock",
        "bookingToken": "off_123",
        "passengers": [
            {
                "firstName": "Jane",
                "lastName": "Doe",
                "dateOfBirth": "1990-01-01",
                "gender": "female",
            }
        ],
        "contactEmail": "jane@x.com",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def payload() -> dict:
    return make_payload()


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_credential(session_factory):
    async def _add(provider: str, environment: str = "sandbox", **fields) -> ProviderCredential:
        fields.setdefault("display_name", provider.title())
        fields.setdefault("api_key", f"{provider}-key")
        fields.setdefault("api_secret", f"{provider}-secret")
        async with session_factory() as session:
            cred = ProviderCredential(provider=provider, environment=environment, **fields)
            session.add(cred)
            await session.commit()
            return cred

    return _add


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(window_seconds=60, max_requests=10, clock=clock)


@pytest.fixture
def spy_adapter() -> SpyAdapter:
    return SpyAdapter()


@pytest.fixture
def registry(spy_adapter) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register("acme", spy_adapter)
    return registry


@pytest.fixture
def booking_engine(limiter, session_factory, registry) -> BookingEngine:
    return BookingEngine(
        limiter=limiter,
        resolver=CredentialResolver(session_factory),
        registry=registry,
        environment="sandbox",
        fallback_on_provider_error=False,
    )


def auth_headers(user_id: str = "user-1") -> dict:
    token = jwt.encode({"sub": user_id}, settings.secret_key, algorithm=settings.algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(booking_engine, session_factory):
    from app.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_booking_engine] = lambda: booking_engine
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


