"""Fixtures for exercising the HTTP gateway in-process."""

from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatcore.api.graphql.context import SessionUser
from chatcore.api.routes import get_session_user
from chatcore.config.settings import Settings
from chatcore.database.session import get_async_session
from chatcore.main import create_app
from chatcore.models.user import User


class SessionHolder:
    """Plays the part of the sign-in flow: whoever is set here is the caller."""

    def __init__(self):
        self.user: SessionUser | None = None

    def login(self, user: User) -> None:
        self.user = SessionUser(id=user.id, username=user.username, role=user.role.value)

    def logout(self) -> None:
        self.user = None


@pytest.fixture
def session_holder() -> SessionHolder:
    return SessionHolder()


def _session_override(session_factory: async_sessionmaker[AsyncSession]):
    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    return _get_session


@pytest.fixture
def api_app(test_settings: Settings, session_factory, session_holder: SessionHolder) -> FastAPI:
    app = create_app(test_settings)
    app.dependency_overrides[get_async_session] = _session_override(session_factory)
    app.dependency_overrides[get_session_user] = lambda: session_holder.user
    return app


@pytest.fixture
def cookie_app(test_settings: Settings, session_factory) -> FastAPI:
    """App that reads the caller from the signed session cookie."""
    app = create_app(test_settings)
    app.dependency_overrides[get_async_session] = _session_override(session_factory)
    return app


@pytest.fixture
async def api_client(api_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as client:
        yield client


@pytest.fixture
def graphql_request(api_client: AsyncClient, test_settings: Settings):
    async def _request(query: str, variables: dict | None = None):
        body = {"query": query}
        if variables is not None:
            body["variables"] = variables
        return await api_client.post(test_settings.GRAPHQL_PATH, json=body)

    return _request
