import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from chatcore.models.user import User
from chatcore.repositories.conversation_repository import ConversationRepository, SummaryRow

logger = logging.getLogger(__name__)


@dataclass
class ConversationSummary:
    """One entry of a user's conversation list."""
    conversation_id: int
    other_participant: User
    last_message: str
    last_message_time: datetime | None
    unread_count: int


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _sort_key(summary: ConversationSummary) -> tuple:
    # Newest activity first, empty conversations last, then newest conversation id
    has_messages = summary.last_message_time is not None
    timestamp = summary.last_message_time.timestamp() if has_messages else 0.0
    return (has_messages, timestamp, summary.conversation_id)


class ConversationListBuilder:
    """
    Builds the conversation list for a user from the aggregated summary query.

    The result is sorted here again (by last message time, descending) so the
    order holds whatever the storage layer returned.
    """

    def __init__(self, conversations: ConversationRepository):
        self.conversations = conversations

    @staticmethod
    def to_summary(row: SummaryRow) -> ConversationSummary:
        return ConversationSummary(
            conversation_id=row.conversation_id,
            other_participant=row.other_user,
            last_message=row.last_message or "",
            last_message_time=_as_utc(row.last_message_time),
            unread_count=int(row.unread_count or 0),
        )

    async def build(self, user_id: int) -> list[ConversationSummary]:
        rows = await self.conversations.list_summaries(user_id)
        summaries = sorted((self.to_summary(row) for row in rows), key=_sort_key, reverse=True)
        logger.debug("conversation_list.built", extra={"user_id": user_id, "count": len(summaries)})
        return summaries
