"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time; give the suite its own defaults first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-reporting-portal-suite")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SSRS_SERVER_URL", "http://ssrs.test/ReportServer")
os.environ["POWERBI_CLIENT_SECRET"] = ""

from datetime import datetime
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import portal.models  # noqa: F401  (registers every table on Base.metadata)
from portal.config import settings
from portal.core.database import Base, get_db
from portal.core.security import create_access_token, hash_password
from portal.main import app
from portal.models.department import Department, ReportDepartment, UserDepartment
from portal.models.hub import Report, ReportGroup, ReportingHub, ReportType
from portal.models.user import Role, User, UserRole
from portal.services.identity.chain import reset_chain

# StaticPool keeps the single in-memory connection alive across sessions
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "Correct-Horse-Battery-9"


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign keys (and with them ON DELETE CASCADE) for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine with a fresh schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session configured like the application's."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def db(db_session: AsyncSession) -> AsyncSession:
    """Alias for db_session to match test function signatures."""
    return db_session


@pytest.fixture(autouse=True)
def _fresh_identity_chain():
    """Each test sees an identity chain built from the current settings."""
    reset_chain()
    yield
    reset_chain()


@pytest.fixture(scope="function")
def override_get_db(db_session: AsyncSession):
    """Override the get_db dependency."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest_asyncio.fixture(scope="function")
async def async_client(override_get_db) -> AsyncGenerator[AsyncClient, None]:
    """Async client talking to the app in-process."""
    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def roles(db_session: AsyncSession) -> dict[str, Role]:
    """Seed the two system roles."""
    admin = Role(name=settings.ADMIN_ROLE_NAME, description="Administrators", is_system_role=True)
    user = Role(name=settings.DEFAULT_ROLE_NAME, description="Standard users", is_system_role=True)
    db_session.add_all([admin, user])
    await db_session.commit()
    return {"admin": admin, "user": user}


@pytest.fixture
def make_user(db_session: AsyncSession, roles):
    """Factory for users; ``admin=True`` adds the Admin role membership."""
    counter = {"n": 0}

    async def _make_user(
        email: Optional[str] = None,
        admin: bool = False,
        password: Optional[str] = TEST_PASSWORD,
        **fields,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password) if password else None,
            first_name=fields.pop("first_name", "Test"),
            last_name=fields.pop("last_name", f"User{counter['n']}"),
            **fields,
        )
        db_session.add(user)
        await db_session.flush()
        db_session.add(UserRole(user_id=user.id, role_id=roles["user"].id))
        if admin:
            db_session.add(UserRole(user_id=user.id, role_id=roles["admin"].id))
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_hub(db_session: AsyncSession):
    async def _make_hub(
        name: str = "Finance",
        code: Optional[str] = None,
        sort_order: int = 0,
        is_active: bool = True,
        hub_id: Optional[int] = None,
    ) -> ReportingHub:
        hub = ReportingHub(
            code=code or name.upper().replace(" ", "_"),
            name=name,
            sort_order=sort_order,
            is_active=is_active,
        )
        if hub_id is not None:
            hub.id = hub_id
        db_session.add(hub)
        await db_session.commit()
        return hub

    return _make_hub


@pytest.fixture
def make_group(db_session: AsyncSession):
    async def _make_group(
        hub: ReportingHub,
        name: str = "Monthly",
        sort_order: int = 0,
        is_active: bool = True,
    ) -> ReportGroup:
        group = ReportGroup(
            hub_id=hub.id,
            code=name.upper().replace(" ", "_"),
            name=name,
            sort_order=sort_order,
            is_active=is_active,
        )
        db_session.add(group)
        await db_session.commit()
        return group

    return _make_group


@pytest.fixture
def make_report(db_session: AsyncSession):
    counter = {"n": 0}

    async def _make_report(
        group: ReportGroup,
        name: Optional[str] = None,
        report_type: ReportType = ReportType.SSRS,
        is_active: bool = True,
        report_id: Optional[int] = None,
        **fields,
    ) -> Report:
        counter["n"] += 1
        name = name or f"Report {counter['n']}"
        if report_type == ReportType.SSRS:
            fields.setdefault("ssrs_report_path", f"/Finance/{name}")
        report = Report(
            report_group_id=group.id,
            code=f"{name.upper().replace(' ', '_')}_{counter['n']}",
            name=name,
            report_type=report_type.value,
            sort_order=counter["n"],
            is_active=is_active,
            **fields,
        )
        if report_id is not None:
            report.id = report_id
        db_session.add(report)
        await db_session.commit()
        return report

    return _make_report


@pytest.fixture
def make_department(db_session: AsyncSession):
    async def _make_department(
        code: str = "SALES", name: Optional[str] = None, is_active: bool = True
    ) -> Department:
        department = Department(code=code, name=name or code.title(), is_active=is_active)
        db_session.add(department)
        await db_session.commit()
        return department

    return _make_department


@pytest.fixture
def add_member(db_session: AsyncSession):
    """Put a user in a department directly, bypassing the service."""

    async def _add_member(
        user: User, department: Department, expires_at: Optional[datetime] = None
    ) -> UserDepartment:
        membership = UserDepartment(
            user_id=user.id, department_id=department.id, expires_at=expires_at
        )
        db_session.add(membership)
        await db_session.commit()
        return membership

    return _add_member


@pytest.fixture
def tag_report(db_session: AsyncSession):
    async def _tag_report(report: Report, department: Department) -> ReportDepartment:
        tag = ReportDepartment(report_id=report.id, department_id=department.id)
        db_session.add(tag)
        await db_session.commit()
        return tag

    return _tag_report


@pytest.fixture
def password() -> str:
    """Plain-text password of every user built by ``make_user``."""
    return TEST_PASSWORD


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(email="admin@example.com", admin=True)


@pytest_asyncio.fixture
async def regular_user(make_user) -> User:
    return await make_user(email="viewer@example.com")


def _bearer(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Returns a function building a Bearer header with a real access token for a user."""
    return _bearer


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return _bearer(admin_user)


@pytest.fixture
def user_headers(regular_user: User) -> dict[str, str]:
    return _bearer(regular_user)
