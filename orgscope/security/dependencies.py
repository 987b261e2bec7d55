from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.security import User
from orgscope.policy.errors import Forbidden, ScopeMissing
from orgscope.policy.resolver import resolve_scope
from orgscope.policy.scopes import Principal, ScopeDescriptor, parse_role, parse_scope_type
from orgscope.policy.store import SqlHierarchyStore
from orgscope.security.auth import authenticate, load_user
from orgscope.security.config import AccessConfig
from orgscope.security.context import AccessContext

logger = logging.getLogger(__name__)


def get_access_config(request: Request) -> AccessConfig:
    config = getattr(request.app.state, "access_config", None)
    if config is None:
        raise RuntimeError("Access config not loaded. Did app startup run?")
    return config


def get_current_user(request: Request) -> User:
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


def get_access(request: Request) -> AccessContext:
    access = getattr(request.state, "access", None)
    if access is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return access


def get_store(db: Session = Depends(get_db)) -> SqlHierarchyStore:
    return SqlHierarchyStore(db)


def parse_scope_override(request: Request) -> ScopeDescriptor | None:
    """
    `?scope_type=SECTION&scope_id=...` lets LOCALITE/OWNER browse one node.

    Both parameters or neither; the resolver decides whether the role may use it.
    """

    raw_type = request.query_params.get("scope_type")
    raw_id = request.query_params.get("scope_id")
    if not raw_type and not raw_id:
        return None

    scope_type = parse_scope_type(raw_type)
    if scope_type is None or not raw_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="scope_type and scope_id must be provided together (LOCALITE, SOUS_LOCALITE or SECTION)",
        )
    return ScopeDescriptor(scope_type, raw_id.strip())


def enforce_security(
    request: Request,
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
) -> None:
    """
    Global access dependency.

    Runs after routing, before the handler: authenticates the caller, checks
    the route's roles and resolves the hierarchy scope. The resulting
    `AccessContext` is what every handler and the ORM filters work from.
    It is stored on `request.state` and on the request's `Session.info`.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    decorator_roles = set(getattr(endpoint, "__access_required_roles__", set())) if endpoint else set()
    decorator_scoped = bool(getattr(endpoint, "__access_scoped_listing__", False)) if endpoint else False

    auth_required = rule.auth_required or bool(decorator_roles) or decorator_scoped
    if not auth_required:
        return

    user_id = authenticate(request, config)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    user = load_user(db, user_id)
    request.state.user = user

    if parse_role(user.role) is None:
        logger.warning("User with unknown role user=%s role=%r", user.id, user.role)
        raise ScopeMissing(f"unknown role {user.role!r}")
    principal = Principal.from_user(user)

    required_roles = set(rule.required_roles) | decorator_roles
    if required_roles and principal.role.value not in required_roles:
        raise Forbidden(f"role {principal.role.value} not in {sorted(required_roles)}")

    scope = resolve_scope(principal, SqlHierarchyStore(db), parse_scope_override(request))

    request.state.access = AccessContext(
        principal=principal,
        scope=scope,
        scoped_listing=rule.scoped or decorator_scoped,
    )
    # Same session the handler receives; the ORM filters read it from here.
    db.info["access"] = request.state.access
    logger.debug(
        "Access resolved user=%s role=%s scope=%s:%s path=%s",
        principal.user_id,
        principal.role.value,
        scope.descriptor.scope_type.value,
        scope.descriptor.scope_id,
        path,
    )
