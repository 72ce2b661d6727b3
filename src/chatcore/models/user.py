from sqlalchemy import String, DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from datetime import datetime
from enum import Enum as PyEnum
from chatcore.database.base import Base


class UserRole(PyEnum):
    """Workspace role of a user."""
    ADMIN = "admin"
    STUDENT = "student"


class User(Base):
    """
    A person who can take part in conversations.

    Rows are owned by the surrounding user directory; the messaging core reads
    them and only ever writes `last_seen`.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True
    )

    # Stored by value ("admin"/"student") rather than by enum member name
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="user_role",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=UserRole.STUDENT,
        index=True
    )

    university_id: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True
    )

    # Last activity, source for the presence estimate
    last_seen: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, username={self.username!r}, role={self.role.value!r})>"
