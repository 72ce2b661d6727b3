"""
Error normalisation for the HTTP surface.

- `format_graphql_error` is the Ariadne `error_formatter`: application errors
  keep their safe message and code, GraphQL syntax/validation errors keep their
  message, anything else becomes "Internal server error" and is logged.
- `register_exception_handlers` maps `AppError` raised by plain routes to
  `to_payload()` JSON with `http_status()`.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from graphql import GraphQLError

from chatcore.exceptions.base import AppError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _original_error(error: GraphQLError) -> BaseException | None:
    original = error.original_error
    while isinstance(original, GraphQLError) and original.original_error is not None:
        original = original.original_error
    return original


def app_error_entry(exc: AppError) -> dict:
    return {
        "message": exc.message,
        "extensions": {"code": exc.error_code or "bad_request"},
    }


def format_graphql_error(error: GraphQLError, debug: bool = False) -> dict:
    original = _original_error(error)

    if isinstance(original, AppError):
        formatted = app_error_entry(original)
        logger.info(
            "gateway.app_error",
            extra={"code": original.error_code, "path": error.path},
        )
    elif original is None or isinstance(original, GraphQLError):
        formatted = {"message": error.message, "extensions": {"code": "graphql_error"}}
    else:
        logger.error(
            "gateway.unhandled_error",
            exc_info=(type(original), original, original.__traceback__),
            extra={"path": error.path},
        )
        formatted = {"message": INTERNAL_ERROR_MESSAGE, "extensions": {"code": "internal_error"}}

    if error.path:
        formatted["path"] = list(error.path)
    if error.locations:
        formatted["locations"] = [{"line": loc.line, "column": loc.column} for loc in error.locations]
    return formatted


def error_response(message: str, status_code: int, code: str = "bad_request") -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"errors": [{"message": message, "extensions": {"code": code}}]},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    JSON body from `exc.to_payload()` with `exc.http_status()`.
    """
    logger.info(
        "http.app_error",
        extra={"method": request.method, "path": request.url.path, "code": exc.error_code},
    )
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


def register_exception_handlers(app):
    app.add_exception_handler(AppError, app_error_handler)
