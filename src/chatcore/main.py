"""
Application factory.

    uvicorn chatcore.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from chatcore.api.error_handlers import register_exception_handlers
from chatcore.api.routes import create_router
from chatcore.config.settings import Settings, get_settings
from chatcore.core.logging import RequestIDMiddleware, setup_logging, stop_queue_logging
from chatcore.models import Base
from chatcore.database.session import dispose_engine, get_engine
from chatcore.utils.logging import get_project_version

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.DB_CREATE_ALL:
            async with get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("app.schema_created")
        logger.info("app.startup", extra={"env": settings.ENV, "graphql_path": settings.GRAPHQL_PATH})
        try:
            yield
        finally:
            await dispose_engine()
            logger.info("app.shutdown")
            stop_queue_logging()

    app = FastAPI(title="chatcore", version=get_project_version(), lifespan=lifespan)
    app.state.settings = settings

    # Added last = outermost: request ids cover the session layer too
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET_KEY,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE,
        https_only=settings.ENV == "production",
    )
    app.add_middleware(RequestIDMiddleware)

    app.include_router(create_router(settings))
    register_exception_handlers(app)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "chatcore.main:create_app",
        factory=True,
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        log_config=None,
    )
