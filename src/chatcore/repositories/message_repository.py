"""
Message repository: append, ordered history and read-state tracking.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import false, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from chatcore.exceptions.base import NotAuthorizedError, ValidationError
from chatcore.exceptions.mapper import db_error_handler
from chatcore.models.conversation import Conversation
from chatcore.models.message import Message
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def normalize_content(content: str | None, max_length: int | None = None) -> str:
    """
    Return `content` stripped of surrounding whitespace.

    Raises:
        ValidationError: nothing is left after stripping, or the text exceeds `max_length`.
    """
    if not isinstance(content, str):
        raise ValidationError("Message content must be text", fields=["content"])
    cleaned = content.strip()
    if not cleaned:
        raise ValidationError("Message content cannot be empty", fields=["content"])
    if max_length is not None and len(cleaned) > max_length:
        raise ValidationError(f"Message content exceeds {max_length} characters", fields=["content"])
    return cleaned


class MessageRepository(BaseRepository[Message]):

    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    def _with_participants(self):
        return select(Message).options(selectinload(Message.sender), selectinload(Message.receiver))

    async def create_message(
        self,
        conversation_id: int,
        sender_id: int,
        receiver_id: int,
        content: str,
        max_length: int | None = None,
    ) -> Message:
        """
        Append a message to a conversation.

        Sender and receiver must be exactly the two participants of the
        conversation. The returned message has its server timestamp, `read=False`
        and the `sender`/`receiver` users loaded. The conversation's `updated_at`
        is bumped.

        Raises:
            ValidationError: empty (after trimming) or over-long content.
            NotAuthorizedError: unknown conversation, or sender/receiver not its participants.
        """
        text = normalize_content(content, max_length)

        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(
                select(Conversation.user_low_id, Conversation.user_high_id).where(Conversation.id == conversation_id)
            )
            participants = result.one_or_none()

        if participants is None or {sender_id, receiver_id} != {participants.user_low_id, participants.user_high_id}:
            logger.info(
                "repo.message.sender_not_participant",
                extra={"conversation_id": conversation_id, "sender_id": sender_id},
            )
            raise NotAuthorizedError("Sender is not a participant of this conversation")

        message = await self.create(
            conversation_id=conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=text,
            read=False,
        )

        async with db_error_handler(self.db, self.model_name):
            await self.db.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=datetime.now(timezone.utc))
            )
            result = await self.db.execute(
                self._with_participants()
                .where(Message.id == message.id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one()

    async def get_conversation_messages(self, conversation_id: int) -> list[Message]:
        """
        Full history of a conversation, oldest first (`created_at`, then `id`).
        """
        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(
                self._with_participants()
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
                .execution_options(populate_existing=True)
            )
            messages = list(result.scalars().all())

        logger.debug("repo.message.history", extra={"conversation_id": conversation_id, "count": len(messages)})
        return messages

    async def mark_conversation_read(self, conversation_id: int, user_id: int) -> int:
        """
        Mark every unread message addressed to `user_id` in the conversation as read.
        Messages the user sent are left alone. Returns the number of rows changed,
        so a second call returns 0.
        """
        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(
                update(Message)
                .where(
                    Message.conversation_id == conversation_id,
                    Message.receiver_id == user_id,
                    Message.read == false(),
                )
                .values(read=True)
                .execution_options(synchronize_session=False)
            )

        changed = result.rowcount or 0
        logger.info(
            "repo.message.marked_read",
            extra={"conversation_id": conversation_id, "user_id": user_id, "changed": changed},
        )
        return changed

    async def count_unread(self, user_id: int) -> int:
        """Unread messages addressed to `user_id` across all conversations."""
        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(
                select(func.count(Message.id)).where(
                    Message.receiver_id == user_id,
                    Message.read == false(),
                )
            )
            return result.scalar() or 0
