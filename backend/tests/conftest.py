"""
Test configuration and fixtures
"""
import os
from datetime import datetime
from typing import AsyncGenerator

# cafm.core.database builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cafm.core.config import get_settings
from cafm.core.database import build_engine, get_db, init_db
from cafm.main import app
from cafm.models.company import Company, School
from cafm.models.user import User, UserType, UserStatus
from cafm.services.work_order_service import WorkOrderService


class FrozenClock:
    """Settable clock passed to the services in place of utcnow."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
async def test_engine(tmp_path):
    """Create a file-backed test database so several sessions can share it."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_session_maker(test_engine):
    """Create test session maker."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(test_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with test_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock():
    # Wednesday mid-morning
    return FrozenClock(datetime(2024, 6, 5, 10, 0))


@pytest.fixture
def service(db_session, clock):
    return WorkOrderService(db_session, clock=clock)


@pytest.fixture
async def company(db_session):
    company = Company(code="ACME", name="Acme Facilities")
    db_session.add(company)
    await db_session.commit()
    return company


@pytest.fixture
async def other_company(db_session):
    company = Company(code="OTHER", name="Other Facilities")
    db_session.add(company)
    await db_session.commit()
    return company


@pytest.fixture
async def school(db_session, company):
    school = School(company_id=company.id, code="SCH-1", name="North Elementary")
    db_session.add(school)
    await db_session.commit()
    return school


@pytest.fixture
def make_user(db_session):
    """Factory for users in a company."""
    counter = {"n": 0}

    async def _make_user(
        company_id: int,
        user_type: UserType = UserType.TECHNICIAN,
        hourly_rate=None,
        is_available: bool = True,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        counter["n"] += 1
        user = User(
            company_id=company_id,
            email=f"user{counter['n']}@example.com",
            first_name="Test",
            last_name=f"User{counter['n']}",
            user_type=user_type,
            status=status,
            is_available=is_available,
            hourly_rate=hourly_rate,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
async def technician(make_user, company):
    return await make_user(company.id, hourly_rate=40.0)


@pytest.fixture
async def supervisor(make_user, company):
    return await make_user(company.id, user_type=UserType.SUPERVISOR)


@pytest.fixture
async def client(test_session_maker) -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the test database."""

    async def override_get_db():
        async with test_session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def test_settings():
    """Application settings as loaded for the test run."""
    return get_settings()
