"""Pytest fixtures for testing."""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("BOOTSTRAP_TOKEN", "test-bootstrap-token")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from academyhub.core.database import get_db
from academyhub.main import app
from academyhub.models.academy import Academy
from academyhub.models.associations import academy_admins, batch_coaches
from academyhub.models.base import Base
from academyhub.models.batch import Batch
from academyhub.models.enums import UserRole
from academyhub.models.user import User
from academyhub.services.mail_service import get_mailer
from tests.helpers import SUPER_ADMIN_PASSWORD, FakeMailer, make_user

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs work with pysqlite
    @event.listens_for(test_engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session on a fresh in-memory schema."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture()
def relay():
    return app.state.relay


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession, mailer: FakeMailer) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and mailer dependency overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def bootstrap_headers() -> dict[str, str]:
    return {"X-Bootstrap-Token": os.environ["BOOTSTRAP_TOKEN"]}


@pytest_asyncio.fixture
async def super_admin(db: AsyncSession) -> User:
    user = await make_user(
        db, "root@example.com", UserRole.SUPER_ADMIN, "SA01", SUPER_ADMIN_PASSWORD, "Root", "Admin"
    )
    await db.commit()
    return user


@pytest_asyncio.fixture
async def academy_admin(db: AsyncSession) -> User:
    user = await make_user(db, "admin@example.com", UserRole.ADMIN, "A01", first_name="Ada", last_name="Admin")
    await db.commit()
    return user


@pytest_asyncio.fixture
async def academy(db: AsyncSession, academy_admin: User) -> Academy:
    academy = Academy(name="Knights Academy")
    db.add(academy)
    await db.flush()
    await db.execute(academy_admins.insert().values(academy_id=academy.id, user_id=academy_admin.id))
    await db.commit()
    return academy


@pytest_asyncio.fixture
async def batch(db: AsyncSession, academy: Academy) -> Batch:
    batch = Batch(batch_code="B01", academy=academy, student_capacity=2, warning_cutoff=2)
    db.add(batch)
    await db.commit()
    return batch


@pytest_asyncio.fixture
async def coach(db: AsyncSession, batch: Batch) -> User:
    user = await make_user(db, "coach@example.com", UserRole.COACH, "C01", first_name="Carl", last_name="Coach")
    await db.execute(batch_coaches.insert().values(batch_id=batch.id, user_id=user.id))
    await db.commit()
    return user


@pytest_asyncio.fixture
async def other_academy(db: AsyncSession) -> Academy:
    academy = Academy(name="Bishops Academy")
    db.add(academy)
    await db.commit()
    return academy


@pytest_asyncio.fixture
async def other_batch(db: AsyncSession, other_academy: Academy) -> Batch:
    batch = Batch(batch_code="B02", academy=other_academy, student_capacity=5)
    db.add(batch)
    await db.commit()
    return batch
