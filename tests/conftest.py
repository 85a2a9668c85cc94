"""Pytest fixtures for the ERP backend tests."""

import os
import tempfile

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="erp-test-")

from decimal import Decimal
from typing import AsyncGenerator
import uuid

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from erp.core.security import get_password_hash
from erp.database import Base, get_db
from erp.main import app
from erp.models import Employee, User, UserRole

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_PASSWORD = "Secret@123"


@pytest.fixture(scope="session")
def password_hash() -> str:
    """bcrypt is slow; hash the shared test password once."""
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
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


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the app with the test database."""

    async def override_get_db():
        async with session_factory() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session, password_hash):
    """
    Factory creating a user with the given role and, by default, a linked
    employee record. Returns (user, employee).
    """
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.EMPLOYEE, with_employee: bool = True, **employee_fields):
        counter["n"] += 1
        n = counter["n"]
        email = f"{role.value.lower()}{n}@example.com"
        user = User(
            email=email,
            password_hash=password_hash,
            full_name=f"{role.value.title()} {n}",
            role=role.value,
            is_active=True,
        )
        session.add(user)
        await session.flush()

        employee = None
        if with_employee:
            employee = Employee(
                employee_code=f"EMP-{9000 + n}",
                user_id=user.id,
                first_name=role.value.title(),
                last_name=str(n),
                email=email,
                salary=employee_fields.pop("salary", Decimal("30000")),
                **employee_fields,
            )
            session.add(employee)

        await session.commit()
        return user, employee

    return _make


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def hr(make_user):
    return await make_user(UserRole.HR)


@pytest.fixture
async def manager(make_user):
    return await make_user(UserRole.MANAGER)


@pytest.fixture
async def employee(make_user):
    return await make_user(UserRole.EMPLOYEE)


@pytest.fixture
def random_id() -> uuid.UUID:
    return uuid.uuid4()
