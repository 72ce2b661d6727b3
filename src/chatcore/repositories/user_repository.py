"""
User repository.

Users are provisioned by the surrounding directory; here we only need lookups,
the directory listing used to start conversations, the presence timestamp
update and a `create_user` helper for seeding.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chatcore.exceptions.mapper import db_error_handler
from chatcore.models.user import User, UserRole
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(
        self,
        username: str,
        role: UserRole = UserRole.STUDENT,
        university_id: str | None = None,
        last_seen: datetime | None = None,
    ) -> User:
        """
        Create a user with a trimmed username.

        Raises:
            DuplicateError: the username is taken.
        """
        return await self.create(
            username=username.strip(),
            role=role,
            university_id=university_id.strip() if university_id else None,
            last_seen=last_seen,
        )

    async def list_users(self, exclude_id: int | None = None, role: UserRole | None = None) -> list[User]:
        """
        Users ordered by username, optionally without `exclude_id` and limited to one role.
        """
        query = select(User).order_by(User.username, User.id)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        if role is not None:
            query = query.where(User.role == role)

        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(query)
            users = list(result.scalars().all())

        logger.debug("repo.user.list", extra={"count": len(users), "role": role.value if role else None})
        return users

    async def touch_last_seen(self, user_id: int, when: datetime | None = None) -> datetime:
        """
        Record activity for `user_id` and return the stored timestamp (UTC).
        """
        when = when or datetime.now(timezone.utc)
        async with db_error_handler(self.db, self.model_name):
            await self.db.execute(
                update(User).where(User.id == user_id).values(last_seen=when)
            )

        logger.debug("repo.user.touch_last_seen", extra={"user_id": user_id})
        return when
