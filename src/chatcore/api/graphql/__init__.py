from .context import GatewayContext, SessionUser
from .schema import schema

__all__ = ["GatewayContext", "SessionUser", "schema"]
