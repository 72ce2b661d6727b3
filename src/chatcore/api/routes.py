"""
HTTP routes: the GraphQL gateway endpoint and a health check.
"""

import logging
from typing import Any

from ariadne import graphql
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from chatcore.config.settings import Settings, get_settings
from chatcore.database.session import get_async_session
from chatcore.exceptions.base import AppError
from chatcore.exceptions.mapper import db_error_handler
from chatcore.utils.logging import get_project_name
from .error_handlers import app_error_entry, error_response, format_graphql_error
from .graphql.context import GatewayContext, SessionUser
from .graphql.schema import schema

logger = logging.getLogger(__name__)

# Receives ariadne's own per-error log calls; they are silenced in the logging
# config because format_graphql_error already logs what matters.
EXECUTOR_LOGGER = "chatcore.api.graphql.executor"


class GraphQLRequest(BaseModel):
    query: str = Field(min_length=1)
    variables: dict[str, Any] | None = None
    operationName: str | None = None


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_session_user(request: Request) -> SessionUser | None:
    """
    The caller as recorded by the session middleware, or None when anonymous.
    Only `request.session["user"]` is read; cookies are the middleware's business.
    """
    if "session" not in request.scope:
        return None

    raw = request.session.get("user")
    if not raw:
        return None

    try:
        return SessionUser.model_validate(raw)
    except PydanticValidationError:
        logger.info("gateway.invalid_session_user")
        return None


async def graphql_endpoint(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    session_user: SessionUser | None = Depends(get_session_user),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return error_response("Request body must be valid JSON", 400)

    try:
        payload = GraphQLRequest.model_validate(body)
    except PydanticValidationError:
        return error_response("Request body must be an object with a non-empty 'query' string", 400)

    context = GatewayContext(db=db, settings=settings, session_user=session_user)

    success, result = await graphql(
        schema,
        payload.model_dump(exclude_none=True),
        context_value=context,
        error_formatter=format_graphql_error,
        debug=settings.GRAPHQL_DEBUG,
        logger=EXECUTOR_LOGGER,
    )

    if result.get("errors"):
        # One failed field fails the whole request; nothing is persisted
        await db.rollback()
    else:
        try:
            async with db_error_handler(db, "transaction"):
                await db.commit()
        except AppError as exc:
            return JSONResponse(status_code=exc.http_status(), content={"data": None, "errors": [app_error_entry(exc)]})

    logger.info(
        "gateway.request",
        extra={
            "operation": payload.operationName,
            "user_id": session_user.id if session_user else None,
            "errors": len(result.get("errors") or []),
        },
    )
    return JSONResponse(result, status_code=200 if success else 400)


def create_router(settings: Settings) -> APIRouter:
    router = APIRouter()
    router.add_api_route(settings.GRAPHQL_PATH, graphql_endpoint, methods=["POST"], name="graphql")

    @router.get(settings.HEALTH_PATH, name="health")
    async def health() -> dict:
        return {"status": "ok", "service": get_project_name(default="chatcore")}

    return router
