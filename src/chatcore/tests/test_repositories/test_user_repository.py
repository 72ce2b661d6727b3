from datetime import datetime, timezone

import pytest

from chatcore.exceptions.base import DuplicateError
from chatcore.models.user import User, UserRole
from chatcore.repositories.user_repository import UserRepository


@pytest.mark.asyncio
class TestUserRepositoryCreate:

    async def test_create_user_success(self, user_repository: UserRepository):
        user = await user_repository.create_user("  dana  ", role=UserRole.ADMIN, university_id=" A-77 ")

        assert isinstance(user, User)
        assert isinstance(user.id, int)
        assert user.username == "dana"
        assert user.role is UserRole.ADMIN
        assert user.university_id == "A-77"
        assert user.last_seen is None
        assert isinstance(user.created_at, datetime)

    async def test_duplicate_username_raises(self, user_repository: UserRepository):
        await user_repository.create_user("erin")

        with pytest.raises(DuplicateError) as exc_info:
            await user_repository.create_user("erin")

        assert exc_info.value.fields == ["username"]
        assert exc_info.value.http_status() == 409


@pytest.mark.asyncio
class TestUserDirectory:

    async def test_list_users_excludes_caller_and_sorts_by_username(self, user_repository, alice, bob, carol):
        users = await user_repository.list_users(exclude_id=bob.id)

        assert [u.username for u in users] == ["alice", "carol"]

    async def test_list_users_by_role(self, user_repository, alice, bob, carol):
        admins = await user_repository.list_users(role=UserRole.ADMIN)
        students = await user_repository.list_users(role=UserRole.STUDENT)

        assert [u.id for u in admins] == [carol.id]
        assert [u.username for u in students] == ["alice", "bob"]

    async def test_touch_last_seen(self, user_repository, db_session, session_factory, alice):
        moment = datetime(2024, 6, 1, 8, 30, tzinfo=timezone.utc)

        stored = await user_repository.touch_last_seen(alice.id, when=moment)
        await db_session.commit()

        async with session_factory() as other:
            reloaded = await UserRepository(other).get_by_id(alice.id)

        assert stored == moment
        assert reloaded.last_seen.replace(tzinfo=timezone.utc) == moment

    async def test_touch_last_seen_defaults_to_now(self, user_repository, alice):
        before = datetime.now(timezone.utc)
        stored = await user_repository.touch_last_seen(alice.id)

        assert stored >= before
        assert stored.tzinfo is not None
