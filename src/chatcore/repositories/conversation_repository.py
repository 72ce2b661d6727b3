"""
Conversation repository: identity of the one conversation per unordered user
pair, participant checks and the per-user summary query.
"""

import logging
from datetime import datetime
from typing import NamedTuple

from sqlalchemy import case, false, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from chatcore.exceptions.base import InvalidParticipantError, StorageUnavailableError, ValidationError
from chatcore.exceptions.integrity_classifier import (
    ForeignKeyConstraintError,
    classify_integrity_error,
    is_unique_violation,
)
from chatcore.exceptions.mapper import db_error_handler
from chatcore.models.conversation import Conversation
from chatcore.models.message import Message
from chatcore.models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Dialects whose INSERT supports ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def canonical_pair(user_a: int, user_b: int) -> tuple[int, int]:
    """
    Return the stored form `(low, high)` of an unordered pair of distinct user ids.

    Raises:
        ValidationError: an id is not a positive integer.
        InvalidParticipantError: both ids are the same user.
    """
    for value in (user_a, user_b):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError("User ids must be positive integers", fields=["user_id"])
    if user_a == user_b:
        raise InvalidParticipantError("A conversation needs two different users")
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class SummaryRow(NamedTuple):
    conversation_id: int
    other_user: User
    last_message: str | None
    last_message_time: datetime | None
    unread_count: int


class ConversationRepository(BaseRepository[Conversation]):

    def __init__(self, db: AsyncSession):
        super().__init__(Conversation, db)

    def _dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    async def _find_pair_id(self, low: int, high: int) -> int | None:
        result = await self.db.execute(
            select(Conversation.id).where(
                Conversation.user_low_id == low,
                Conversation.user_high_id == high,
            )
        )
        return result.scalar_one_or_none()

    async def _insert_pair(self, low: int, high: int) -> None:
        """
        Insert the pair unless it already exists. The unique constraint arbitrates
        concurrent first contacts; the loser silently inserts nothing.
        """
        insert_fn = _UPSERT_INSERTS.get(self._dialect_name())
        if insert_fn is not None:
            stmt = (
                insert_fn(Conversation)
                .values(user_low_id=low, user_high_id=high)
                .on_conflict_do_nothing(index_elements=["user_low_id", "user_high_id"])
            )
            await self.db.execute(stmt)
            return

        # Other backends: contain the duplicate inside a SAVEPOINT
        try:
            async with self.db.begin_nested():
                self.db.add(Conversation(user_low_id=low, user_high_id=high))
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            logger.info("repo.conversation.insert_race_lost", extra={"user_low_id": low, "user_high_id": high})

    async def get_or_create_for_pair(self, user_a: int, user_b: int) -> int:
        """
        Return the id of the conversation between `user_a` and `user_b`, creating it
        on first contact. Argument order does not matter and repeated or concurrent
        calls for the same pair yield the same id.

        Raises:
            ValidationError: non-positive ids.
            InvalidParticipantError: same user twice, or an id that is not a user.
            StorageUnavailableError: the database failed.
        """
        low, high = canonical_pair(user_a, user_b)

        async with db_error_handler(self.db, self.model_name):
            existing = await self._find_pair_id(low, high)
            if existing is not None:
                return existing

            result = await self.db.execute(select(func.count(User.id)).where(User.id.in_((low, high))))
            if result.scalar() != 2:
                logger.info("repo.conversation.unknown_participant", extra={"user_ids": [low, high]})
                raise InvalidParticipantError("Both participants must be existing users", fields=["receiver_id"])

            try:
                await self._insert_pair(low, high)
            except IntegrityError as exc:
                exc_cls, constraint = classify_integrity_error(exc)
                if exc_cls is not ForeignKeyConstraintError:
                    raise
                # A participant was deleted after the count above
                await self.db.rollback()
                logger.info(
                    "repo.conversation.participant_vanished",
                    extra={"user_ids": [low, high], "constraint": constraint},
                )
                raise InvalidParticipantError(
                    "Both participants must be existing users", fields=["receiver_id"]
                ) from exc
            conversation_id = await self._find_pair_id(low, high)

        if conversation_id is None:
            # The row was inserted or found, then vanished before the re-read
            logger.error("repo.conversation.pair_vanished", extra={"user_low_id": low, "user_high_id": high})
            raise StorageUnavailableError()

        logger.info(
            "repo.conversation.resolved",
            extra={"conversation_id": conversation_id, "user_low_id": low, "user_high_id": high},
        )
        return conversation_id

    async def get_participant_ids(self, conversation_id: int) -> tuple[int, int] | None:
        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(
                select(Conversation.user_low_id, Conversation.user_high_id).where(Conversation.id == conversation_id)
            )
            row = result.one_or_none()
        return (row.user_low_id, row.user_high_id) if row else None

    async def is_participant(self, conversation_id: int, user_id: int) -> bool:
        participants = await self.get_participant_ids(conversation_id)
        return participants is not None and user_id in participants

    async def list_summaries(self, user_id: int) -> list[SummaryRow]:
        """
        One row per conversation of `user_id` with the counterpart user, the latest
        message (content/time, None when the conversation is empty) and the number
        of messages addressed to `user_id` that are still unread.

        Everything is computed in a single statement.
        """
        latest_id = (
            select(Message.id)
            .where(Message.conversation_id == Conversation.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
            .correlate(Conversation)
            .scalar_subquery()
        )
        unread = (
            select(func.count(Message.id))
            .where(
                Message.conversation_id == Conversation.id,
                Message.receiver_id == user_id,
                Message.read == false(),
            )
            .correlate(Conversation)
            .scalar_subquery()
        )
        other_id = case(
            (Conversation.user_low_id == user_id, Conversation.user_high_id),
            else_=Conversation.user_low_id,
        )
        latest = aliased(Message, name="latest_message")

        stmt = (
            select(
                Conversation.id,
                User,
                latest.content,
                latest.created_at,
                unread.label("unread_count"),
            )
            .select_from(Conversation)
            .join(User, User.id == other_id)
            .outerjoin(latest, latest.id == latest_id)
            .where(or_(Conversation.user_low_id == user_id, Conversation.user_high_id == user_id))
            .order_by(latest.created_at.desc(), Conversation.id.desc())
        )

        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(stmt)
            rows = [
                SummaryRow(conv_id, other, content, created_at, int(unread_count or 0))
                for conv_id, other, content, created_at, unread_count in result.all()
            ]

        logger.debug("repo.conversation.summaries", extra={"user_id": user_id, "count": len(rows)})
        return rows
