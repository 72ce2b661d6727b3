"""
Messaging facade used by the gateway resolvers.

Ties the repositories together behind the operations a signed-in user can
perform. Authorization lives here: every read or write of a conversation is
checked against its participants first. Nothing is committed here; the caller
owns the transaction.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from chatcore.config.settings import Settings, get_settings
from chatcore.exceptions.base import InvalidParticipantError, NotAuthorizedError, ValidationError
from chatcore.models.message import Message
from chatcore.models.user import User, UserRole
from chatcore.repositories.conversation_repository import ConversationRepository
from chatcore.repositories.message_repository import MessageRepository, normalize_content
from chatcore.repositories.user_repository import UserRepository
from .conversation_list import ConversationListBuilder, ConversationSummary

logger = logging.getLogger(__name__)


def _require_id(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", fields=[field])
    return value


class MessagingService:

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.users = UserRepository(db)
        self.conversations = ConversationRepository(db)
        self.messages = MessageRepository(db)
        self.list_builder = ConversationListBuilder(self.conversations)

    # -----------------------
    # Conversation directory
    # -----------------------

    async def get_or_create_conversation(self, user_a: int, user_b: int) -> int:
        return await self.conversations.get_or_create_for_pair(user_a, user_b)

    async def _ensure_participant(self, conversation_id: int, user_id: int) -> None:
        _require_id(conversation_id, "conversation_id")
        # Unknown conversations are reported like foreign ones
        if not await self.conversations.is_participant(conversation_id, user_id):
            logger.info(
                "messaging.not_participant",
                extra={"conversation_id": conversation_id, "user_id": user_id},
            )
            raise NotAuthorizedError()

    # -----------------------
    # Messages
    # -----------------------

    async def append_message(self, conversation_id: int, sender_id: int, receiver_id: int, content: str) -> Message:
        _require_id(conversation_id, "conversation_id")
        return await self.messages.create_message(
            conversation_id,
            sender_id,
            receiver_id,
            content,
            max_length=self.settings.MESSAGE_MAX_LENGTH,
        )

    async def send_message(self, sender_id: int, receiver_id: int, content: str) -> Message:
        """
        Send `content` from `sender_id` to `receiver_id`, opening their conversation
        on first contact.

        Raises:
            ValidationError: blank/over-long content or a malformed receiver id.
            InvalidParticipantError: sending to oneself or to a user that does not exist.
        """
        _require_id(receiver_id, "receiver_id")
        # Reject bad content before a conversation gets created for nothing
        normalize_content(content, self.settings.MESSAGE_MAX_LENGTH)
        if receiver_id == sender_id:
            raise InvalidParticipantError("You cannot send a message to yourself", fields=["receiver_id"])

        conversation_id = await self.get_or_create_conversation(sender_id, receiver_id)
        message = await self.append_message(conversation_id, sender_id, receiver_id, content)

        logger.info(
            "messaging.sent",
            extra={"conversation_id": conversation_id, "message_id": message.id, "sender_id": sender_id},
        )
        return message

    async def get_messages(self, conversation_id: int, user_id: int) -> list[Message]:
        await self._ensure_participant(conversation_id, user_id)
        return await self.messages.get_conversation_messages(conversation_id)

    # -----------------------
    # Read state
    # -----------------------

    async def mark_read(self, conversation_id: int, user_id: int) -> int:
        await self._ensure_participant(conversation_id, user_id)
        return await self.messages.mark_conversation_read(conversation_id, user_id)

    async def unread_count(self, user_id: int) -> int:
        return await self.messages.count_unread(user_id)

    # -----------------------
    # Lists
    # -----------------------

    async def list_conversations(self, user_id: int) -> list[ConversationSummary]:
        return await self.list_builder.build(user_id)

    async def list_contacts(self, user_id: int, role: UserRole | None = None) -> list[User]:
        """Users the caller can start a conversation with."""
        return await self.users.list_users(exclude_id=user_id, role=role)
