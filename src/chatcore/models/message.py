from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from datetime import datetime
from chatcore.database.base import Base
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .conversation import Conversation
    from .user import User


class Message(Base):
    """
    A message exchanged inside a conversation.

    Immutable once written except for `read`, which flips to True when the
    receiver opens the conversation. History is ordered by `created_at` with
    `id` as tie-breaker.
    """
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        Index("ix_messages_receiver_read", "receiver_id", "read"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id"),
        nullable=False,
        index=True
    )

    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False
    )

    receiver_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False
    )

    # Stored trimmed; never empty
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False
    )

    read: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=false(),
        nullable=False
    )

    # Server-assigned; clients never supply it
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # --- Relationships ---

    conversation: Mapped["Conversation"] = relationship(
        "Conversation",
        back_populates="messages"
    )

    sender: Mapped["User"] = relationship("User", foreign_keys=[sender_id])
    receiver: Mapped["User"] = relationship("User", foreign_keys=[receiver_id])

    def __repr__(self) -> str:
        return (
            f"<Message(id={self.id!r}, conversation_id={self.conversation_id!r}, "
            f"sender_id={self.sender_id!r}, read={self.read!r})>"
        )
