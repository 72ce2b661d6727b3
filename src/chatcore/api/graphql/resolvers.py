"""
Resolver map for the messaging schema.

Every root field goes through `authenticated`, which resolves the caller and
serialises database access on the request's session.
"""

import logging
from datetime import datetime, timezone
from functools import wraps

from ariadne import MutationType, ObjectType, QueryType, ScalarType

from chatcore.models.user import User, UserRole
from chatcore.services.conversation_list import ConversationSummary
from chatcore.services.presence import presence
from .context import GatewayContext

logger = logging.getLogger(__name__)

query = QueryType()
mutation = MutationType()
datetime_scalar = ScalarType("DateTime")
user_type = ObjectType("User")
conversation_user_type = ObjectType("ConversationUser")
conversation_type = ObjectType("Conversation")


def authenticated(resolver):
    """Call `resolver(obj, info, user, **kwargs)` with the signed-in `User`."""

    @wraps(resolver)
    async def wrapper(obj, info, **kwargs):
        context: GatewayContext = info.context
        async with context.lock:
            user = await context.require_user()
            return await resolver(obj, info, user, **kwargs)

    return wrapper


# -----------------------
# Scalars
# -----------------------

@datetime_scalar.serializer
def serialize_datetime(value):
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return value


@datetime_scalar.value_parser
def parse_datetime_value(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# -----------------------
# Object fields
# -----------------------

def resolve_role(user: User, info) -> str:
    return user.role.value


def resolve_presence(user: User, info) -> dict:
    estimate = presence(user.last_seen)
    return {"status": estimate.status.value, "label": estimate.label}


for _user_object in (user_type, conversation_user_type):
    _user_object.set_field("role", resolve_role)
    _user_object.set_field("presence", resolve_presence)


@conversation_type.field("id")
def resolve_conversation_id(summary: ConversationSummary, info) -> int:
    return summary.conversation_id


@conversation_type.field("other_user")
def resolve_other_user(summary: ConversationSummary, info) -> User:
    return summary.other_participant


# -----------------------
# Queries
# -----------------------

@query.field("me")
@authenticated
async def resolve_me(obj, info, user: User):
    return user


@query.field("allUsers")
@authenticated
async def resolve_all_users(obj, info, user: User):
    return await info.context.messaging.list_contacts(user.id)


@query.field("students")
@authenticated
async def resolve_students(obj, info, user: User):
    return await info.context.messaging.list_contacts(user.id, role=UserRole.STUDENT)


@query.field("admins")
@authenticated
async def resolve_admins(obj, info, user: User):
    return await info.context.messaging.list_contacts(user.id, role=UserRole.ADMIN)


@query.field("conversations")
@authenticated
async def resolve_conversations(obj, info, user: User):
    return await info.context.messaging.list_conversations(user.id)


@query.field("messages")
@authenticated
async def resolve_messages(obj, info, user: User, conversation_id: int):
    return await info.context.messaging.get_messages(conversation_id, user.id)


@query.field("unreadMessageCount")
@authenticated
async def resolve_unread_message_count(obj, info, user: User):
    return await info.context.messaging.unread_count(user.id)


# -----------------------
# Mutations
# -----------------------

@mutation.field("sendMessage")
@authenticated
async def resolve_send_message(obj, info, user: User, receiver_id: int, content: str):
    return await info.context.messaging.send_message(user.id, receiver_id, content)


@mutation.field("markMessagesAsRead")
@authenticated
async def resolve_mark_messages_as_read(obj, info, user: User, conversation_id: int):
    await info.context.messaging.mark_read(conversation_id, user.id)
    return True


bindables = [
    query,
    mutation,
    datetime_scalar,
    user_type,
    conversation_user_type,
    conversation_type,
]
