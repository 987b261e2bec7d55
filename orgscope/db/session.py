from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from orgscope.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency: one session per request.

    `enforce_security` opens it first and, once the scope is resolved, stores
    the `AccessContext` in `Session.info["access"]`. FastAPI caches the
    dependency per request, so handlers get that same session and list queries
    on scoped routes are narrowed by `orgscope.db.filters`. A session opened
    after resolution (an uncached `Depends`) picks the context up from
    `request.state` instead.
    """

    db = SessionLocal()
    try:
        access = getattr(getattr(request, "state", None), "access", None)
        if access is not None:
            db.info["access"] = access
        yield db
    finally:
        db.close()
