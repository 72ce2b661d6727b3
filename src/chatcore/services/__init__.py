from .presence import Presence, PresenceStatus, presence
from .conversation_list import ConversationListBuilder, ConversationSummary
from .messaging import MessagingService

__all__ = [
    "Presence",
    "PresenceStatus",
    "presence",
    "ConversationListBuilder",
    "ConversationSummary",
    "MessagingService",
]
