import asyncio
import logging
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, PositiveInt
from sqlalchemy.ext.asyncio import AsyncSession

from chatcore.config.settings import Settings
from chatcore.exceptions.base import UnauthenticatedError
from chatcore.models.user import User
from chatcore.services.messaging import MessagingService

logger = logging.getLogger(__name__)


class SessionUser(BaseModel):
    """The caller as stored in the session under the "user" key."""
    model_config = ConfigDict(extra="ignore")

    id: PositiveInt
    username: str
    role: str | None = None


@dataclass
class GatewayContext:
    """
    Per-request state handed to every resolver.

    graphql-core resolves sibling async fields concurrently, but one
    `AsyncSession` must not run two statements at once, so resolvers take
    `lock` around their database work.
    """
    db: AsyncSession
    settings: Settings
    session_user: SessionUser | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    messaging: MessagingService = field(init=False)
    _user: User | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.messaging = MessagingService(self.db, self.settings)

    async def require_user(self) -> User:
        """
        Resolve the caller to a stored user, once per request.

        Raises:
            UnauthenticatedError: no session user, or the user no longer exists.
        """
        if self._user is not None:
            return self._user

        if self.session_user is None:
            raise UnauthenticatedError()

        user = await self.messaging.users.get_by_id(self.session_user.id)
        if user is None:
            logger.info("gateway.stale_session_user", extra={"user_id": self.session_user.id})
            raise UnauthenticatedError("Your session is no longer valid, please sign in again")

        if self.settings.PRESENCE_TOUCH_ON_REQUEST:
            await self.messaging.users.touch_last_seen(user.id)

        self._user = user
        return user
