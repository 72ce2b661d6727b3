from datetime import datetime, timedelta, timezone

import pytest

from chatcore.models.user import User, UserRole
from chatcore.repositories.conversation_repository import SummaryRow
from chatcore.services.conversation_list import ConversationListBuilder


class FakeConversationRepository:
    """Returns canned summary rows in whatever order it was given."""

    def __init__(self, rows):
        self.rows = rows
        self.requested_for = []

    async def list_summaries(self, user_id):
        self.requested_for.append(user_id)
        return list(self.rows)


def _user(user_id: int, username: str) -> User:
    return User(id=user_id, username=username, role=UserRole.STUDENT)


BASE = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
class TestConversationListBuilder:

    async def test_sorted_newest_first_whatever_the_storage_order(self):
        rows = [
            SummaryRow(1, _user(2, "bob"), "old", BASE, 0),
            SummaryRow(2, _user(3, "carol"), "newest", BASE + timedelta(hours=2), 1),
            SummaryRow(3, _user(4, "dave"), "middle", BASE + timedelta(hours=1), 0),
        ]
        repo = FakeConversationRepository(rows)

        summaries = await ConversationListBuilder(repo).build(1)

        assert [s.conversation_id for s in summaries] == [2, 3, 1]
        assert repo.requested_for == [1]

    async def test_conversations_without_messages_go_last(self):
        rows = [
            SummaryRow(5, _user(2, "bob"), None, None, 0),
            SummaryRow(6, _user(3, "carol"), "hi", BASE, 0),
            SummaryRow(7, _user(4, "dave"), None, None, 0),
        ]

        summaries = await ConversationListBuilder(FakeConversationRepository(rows)).build(1)

        assert [s.conversation_id for s in summaries] == [6, 7, 5]
        assert summaries[1].last_message == ""
        assert summaries[1].last_message_time is None

    async def test_ties_break_on_conversation_id(self):
        rows = [
            SummaryRow(10, _user(2, "bob"), "a", BASE, 0),
            SummaryRow(11, _user(3, "carol"), "b", BASE, 0),
        ]

        summaries = await ConversationListBuilder(FakeConversationRepository(rows)).build(1)

        assert [s.conversation_id for s in summaries] == [11, 10]

    async def test_empty(self):
        assert await ConversationListBuilder(FakeConversationRepository([])).build(1) == []


class TestToSummary:

    def test_naive_timestamps_are_treated_as_utc(self):
        row = SummaryRow(1, _user(2, "bob"), "hello", datetime(2024, 3, 1, 12, 0), 2)

        summary = ConversationListBuilder.to_summary(row)

        assert summary.last_message_time == BASE
        assert summary.last_message_time.tzinfo is not None

    def test_offset_timestamps_are_normalized_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        row = SummaryRow(1, _user(2, "bob"), "hello", datetime(2024, 3, 1, 14, 0, tzinfo=plus_two), None)

        summary = ConversationListBuilder.to_summary(row)

        assert summary.last_message_time == BASE
        assert summary.last_message_time.utcoffset() == timedelta(0)
        assert summary.unread_count == 0
        assert summary.other_participant.username == "bob"
