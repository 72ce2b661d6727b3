from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from datetime import datetime
from chatcore.database.base import Base
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .user import User
    from .message import Message


class Conversation(Base):
    """
    The single conversation between an unordered pair of users.

    The pair is stored canonically (`user_low_id < user_high_id`) so the unique
    constraint over both columns is enough to guarantee one row per pair, no
    matter which side starts talking first.
    """
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversations_participant_pair"),
        CheckConstraint("user_low_id < user_high_id", name="canonical_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_low_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    user_high_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Bumped whenever a message is appended
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    # --- Relationships ---

    user_low: Mapped["User"] = relationship("User", foreign_keys=[user_low_id])
    user_high: Mapped["User"] = relationship("User", foreign_keys=[user_high_id])

    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        lazy="select",
        order_by="[Message.created_at, Message.id]"
    )

    def __repr__(self) -> str:
        return (
            f"<Conversation(id={self.id!r}, user_low_id={self.user_low_id!r}, "
            f"user_high_id={self.user_high_id!r})>"
        )
