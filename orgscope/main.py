from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from orgscope.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from orgscope.db.init_db import init_db
from orgscope.logging_config import configure_app_logging
from orgscope.policy.errors import AccessError, Forbidden, IneligibleMember, NotFound, OutOfScope, ScopeMissing
from orgscope.routers import bureau, health, hierarchy, meeting_types, meetings, members, messages, stats, users
from orgscope.security.config import load_access_config
from orgscope.security.dependencies import enforce_security
from orgscope.settings import get_settings

logger = logging.getLogger(__name__)


async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    """
    Map policy failures to HTTP.

    ScopeMissing and Forbidden share one body so a client cannot tell
    "no position in the hierarchy" from "outside your subtree"; the reason
    code only goes to the log.
    """

    if isinstance(exc, (ScopeMissing, Forbidden)):
        logger.info(
            "Access denied code=%s reason=%s path=%s method=%s",
            exc.code,
            exc.message,
            request.url.path,
            request.method,
        )
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": "Access denied"})

    if isinstance(exc, (IneligibleMember, OutOfScope)):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message, "code": exc.code})

    if isinstance(exc, NotFound):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

    logger.warning("Unmapped access error code=%s path=%s", exc.code, request.url.path)
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": "Access denied"})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)

        logger.info("App startup beginning")

        app.state.access_config = load_access_config(settings.resolved_access_config_path())
        logger.info("Loaded access config: %s", settings.resolved_access_config_path())
        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    # Global dependency: every route is authenticated and scoped before its handler runs.
    app = FastAPI(title="orgscope", dependencies=[Depends(enforce_security)], lifespan=lifespan)
    app.add_exception_handler(AccessError, access_error_handler)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(hierarchy.router)
    app.include_router(members.router)
    app.include_router(meeting_types.router)
    app.include_router(meetings.router)
    app.include_router(bureau.router)
    app.include_router(messages.router)
    app.include_router(stats.router)

    return app


app = create_app()
