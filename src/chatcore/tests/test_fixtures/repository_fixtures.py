"""Fixtures for repository and service tests."""

from typing import Awaitable, Callable

import pytest
from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatcore.config.settings import Settings
from chatcore.models.user import User, UserRole
from chatcore.repositories.conversation_repository import ConversationRepository
from chatcore.repositories.message_repository import MessageRepository
from chatcore.repositories.user_repository import UserRepository
from chatcore.services.messaging import MessagingService


@pytest.fixture(scope="session")
def faker_instance() -> Faker:
    fake = Faker()
    Faker.seed(2024)
    return fake


@pytest.fixture
def user_repository(db_session: AsyncSession) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def conversation_repository(db_session: AsyncSession) -> ConversationRepository:
    return ConversationRepository(db_session)


@pytest.fixture
def message_repository(db_session: AsyncSession) -> MessageRepository:
    return MessageRepository(db_session)


@pytest.fixture
def messaging_service(db_session: AsyncSession, test_settings: Settings) -> MessagingService:
    return MessagingService(db_session, test_settings)


@pytest.fixture
def make_user(
    session_factory: async_sessionmaker[AsyncSession], faker_instance: Faker
) -> Callable[..., Awaitable[User]]:
    """
    Factory that commits a user through its own session, so the row is visible
    to every other session in the test (API requests, concurrent sessions).
    """

    async def _make_user(username: str | None = None, role: UserRole = UserRole.STUDENT, **kwargs) -> User:
        async with session_factory() as session:
            user = await UserRepository(session).create_user(
                username=username or faker_instance.unique.user_name(),
                role=role,
                **kwargs,
            )
            await session.commit()
            return user

    return _make_user


@pytest.fixture
async def alice(make_user) -> User:
    return await make_user("alice", role=UserRole.STUDENT, university_id="S-1001")


@pytest.fixture
async def bob(make_user) -> User:
    return await make_user("bob", role=UserRole.STUDENT, university_id="S-1002")


@pytest.fixture
async def carol(make_user) -> User:
    return await make_user("carol", role=UserRole.ADMIN)
