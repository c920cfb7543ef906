"""Test fixtures and configuration."""

import logging
import os
import sys

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.logger import get_logger

logger = get_logger(__name__)

# Set ENVIRONMENT for pydantic settings
os.environ["ENVIRONMENT"] = "testing"


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys/caplog capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=False),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


def _enable_sqlite_savepoints(engine) -> None:
    """Let SQLAlchemy own transaction boundaries so SAVEPOINT works on SQLite.

    WAL journaling keeps readers on one connection from blocking commits on
    another, which the multi-session tests rely on.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Per-test SQLite database file with the full schema.

    A file (not ``:memory:``) so that separate sessions get separate
    connections, as they would against PostgreSQL.
    """
    from src.database import Base
    from src.models import (  # noqa: F401
        BankAccount,
        BankTransaction,
        Contact,
        Invoice,
        Organization,
        Payment,
        User,
    )

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    _enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(db_engine):
    """Session factory bound to the test engine, also injected into ``get_db``."""
    from src import database

    test_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    previous = database.set_test_session_maker(test_maker)
    yield test_maker
    database.set_test_session_maker(previous)


@pytest_asyncio.fixture(scope="function")
async def db(session_maker):
    """Test database session.

    Tests that go through the HTTP client must commit their setup data first;
    the app uses its own session and connection.
    """
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def organization(db):
    from tests.factories import OrganizationFactory

    return await OrganizationFactory.create_async(db)


@pytest_asyncio.fixture(scope="function")
async def other_organization(db):
    from tests.factories import OrganizationFactory

    return await OrganizationFactory.create_async(db, name="Someone Else s.r.o.")


@pytest_asyncio.fixture(scope="function")
async def test_user(db, organization):
    """User belonging to ``organization``, committed so the app session sees it."""
    from tests.factories import UserFactory

    user = await UserFactory.create_async(db, organization_id=organization.id)
    await db.commit()
    return user


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, test_user):
    """Authenticated async test client acting for ``test_user``'s organization."""
    from src.main import app
    from src.security import create_access_token

    token = create_access_token(test_user.id)
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {token}"},
    ) as client_instance:
        yield client_instance


@pytest_asyncio.fixture(scope="function")
async def public_client(session_maker):
    """Async test client without auth headers."""
    from src.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client_instance:
        yield client_instance
