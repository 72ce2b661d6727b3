"""
Core pytest configuration shared by every test package.

Each test gets its own database: a throw-away SQLite file under `tmp_path`
(or `TEST_DATABASE_URL`, e.g. a Postgres test database in CI) with the schema
created up front and dropped afterwards. Domain fixtures live in
`tests/test_fixtures/` and are registered at the bottom of this module.
"""

from __future__ import annotations

import os
import logging
from typing import AsyncGenerator
from urllib.parse import urlparse

NOISY_LOGGERS = (
    "faker",
    "faker.factory",
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "aiosqlite",
    "asyncio",
    "httpx",
    "httpcore",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)


import pytest
from pytest import FixtureRequest
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine,
)

from chatcore.config.settings import Settings
from chatcore.core.logging.builder import setup_logging
from chatcore.models import Base

logger = logging.getLogger(__name__)


def make_test_settings(**overrides) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    values = {
        "ENV": "testing",
        "TESTING": True,
        "LOG_FORMAT": "text",
        "LOG_LEVEL": "INFO",
        "LOG_TO_STDOUT": True,
        "SESSION_SECRET_KEY": "test-secret-key",
        "MESSAGE_MAX_LENGTH": 500,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return make_test_settings()


@pytest.fixture(scope="session", autouse=True)
def configure_logging(request: FixtureRequest, test_settings: Settings):
    """
    Install the application logging config once per session, then put pytest's
    capture handler back on the root logger (dictConfig removes it) so
    `caplog` keeps working.
    """
    setup_logging(test_settings)

    caplog_plugin = request.config.pluginmanager.getplugin("logging-plugin")
    handler = getattr(caplog_plugin, "caplog_handler", None)
    if handler is not None:
        logging.getLogger().addHandler(handler)

    yield


def safe_log_db_url(db_url: str) -> str:
    """Database URL without credentials, for logging."""
    parsed = urlparse(db_url)
    return f"{parsed.scheme}://{parsed.hostname or ''}:{parsed.port or ''}/{parsed.path.lstrip('/')}"


@pytest.fixture
def database_url(tmp_path) -> str:
    if test_url := os.getenv("TEST_DATABASE_URL"):
        return test_url
    return f"sqlite+aiosqlite:///{tmp_path / 'chatcore_test.db'}"


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    logger.info("tests.database", extra={"url": safe_log_db_url(database_url)})
    engine = create_async_engine(database_url, pool_pre_ping=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Independent sessions, e.g. to simulate concurrent requests."""
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


from .test_fixtures.repository_fixtures import (  # noqa: E402,F401
    faker_instance,
    user_repository,
    conversation_repository,
    message_repository,
    messaging_service,
    make_user,
    alice,
    bob,
    carol,
)
from .test_fixtures.api_fixtures import (  # noqa: E402,F401
    session_holder,
    api_app,
    cookie_app,
    api_client,
    graphql_request,
)
