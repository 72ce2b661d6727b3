from .base_repository import BaseRepository
from .user_repository import UserRepository
from .conversation_repository import ConversationRepository, canonical_pair
from .message_repository import MessageRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "ConversationRepository",
    "MessageRepository",
    "canonical_pair",
]
