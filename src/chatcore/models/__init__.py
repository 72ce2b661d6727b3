"""
Single import point for the ORM models, so `Base.metadata` is fully populated
whenever any model is used:

    from chatcore.models import User, Conversation, Message, UserRole
"""

from chatcore.database.base import Base
from .user import User, UserRole
from .conversation import Conversation
from .message import Message

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Conversation",
    "Message",
]
