"""Pytest fixtures for disaster response backend tests."""

import secrets
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import Incident, Role, User, UserStatus
from app.rate_limit import limiter
from app.schemas import IncidentCreate, Location
from app.services.identifiers import generate_user_id
from app.services.lifecycle import IncidentLifecycle

# Test database URL - in-memory SQLite shared through a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def async_engine():
    """Create async engine with all tables for testing."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def second_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Independent session on the same database, acting as a concurrent request."""
    async_session = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
    limiter.enabled = True


async def create_user(
    db: AsyncSession,
    role: Role,
    first_name: str = "Test",
    status: UserStatus = UserStatus.ACTIVE,
    **fields: Any,
) -> User:
    """Insert a user with a fresh session token."""
    user = User(
        id=generate_user_id(),
        first_name=first_name,
        last_name=role.capitalize(),
        email=f"{secrets.token_hex(6)}@example.com",
        role=role,
        status=status,
        api_token=secrets.token_urlsafe(16),
        **fields,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def make_user(db_session):
    """Factory for extra users in a given role or account status."""

    async def factory(role: Role, **fields: Any) -> User:
        return await create_user(db_session, role, **fields)

    return factory


@pytest_asyncio.fixture
async def admin(db_session) -> User:
    return await create_user(db_session, Role.ADMIN, first_name="Ada")


@pytest_asyncio.fixture
async def reporter(db_session) -> User:
    return await create_user(db_session, Role.USER, first_name="Uma")


@pytest_asyncio.fixture
async def volunteer(db_session) -> User:
    return await create_user(
        db_session, Role.VOLUNTEER, first_name="Val", current_lat=40.75, current_lng=-73.99
    )


@pytest_asyncio.fixture
async def other_volunteer(db_session) -> User:
    return await create_user(db_session, Role.VOLUNTEER, first_name="Vic")


@pytest.fixture
def auth() -> Callable[[User], dict[str, str]]:
    """Build the Authorization header for a user."""

    def headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {user.api_token}"}

    return headers


@pytest.fixture
def fire_report() -> IncidentCreate:
    """Sample incident report body."""
    return IncidentCreate(
        type="fire",
        severity=5,
        description="test",
        location=Location(lat=40.7, lng=-74.0),
    )


@pytest_asyncio.fixture
async def unverified_incident(db_session, reporter, fire_report) -> Incident:
    return await IncidentLifecycle(db_session).create(reporter, fire_report)


@pytest_asyncio.fixture
async def available_incident(db_session, admin, unverified_incident) -> Incident:
    return await IncidentLifecycle(db_session).verify(admin, unverified_incident.id)


@pytest.fixture
def sample_osrm_response() -> dict[str, Any]:
    """OSRM route response (GeoJSON geometry, lng/lat order)."""
    return {
        "code": "Ok",
        "routes": [
            {
                "geometry": {
                    "type": "LineString",
                    "coordinates": [
                        [-73.99, 40.75],
                        [-73.995, 40.73],
                        [-74.0, 40.7],
                    ],
                },
                "distance": 6543.2,
                "duration": 812.5,
            }
        ],
    }
