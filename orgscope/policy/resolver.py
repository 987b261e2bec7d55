"""
Scope resolution: principal -> canonical `AccessScope`.

Resolution runs once per request against the current state of the store.
Nothing is cached between requests.
"""

from __future__ import annotations

import logging
from typing import NoReturn

from orgscope.policy.errors import ScopeMissing
from orgscope.policy.scopes import (
    ALL_LOCALITES,
    TENANT_WIDE_ROLES,
    AccessScope,
    Principal,
    Role,
    ScopeDescriptor,
    ScopeType,
)
from orgscope.policy.store import HierarchyStore

logger = logging.getLogger(__name__)


def localite_fallback_chain(principal: Principal, store: HierarchyStore) -> str | None:
    """
    Derive the Localité a principal belongs to, nearest level first.

    Order is significant and short-circuits at the first non-null value:
        1. the user's own `localite_id`
        2. the `localite_id` of the user's SousLocalité
        3. the `localite_id` of the user's Section -> SousLocalité chain

    Several candidates can only coexist through stale rows; the nearest wins.
    """

    if principal.localite_id:
        return principal.localite_id

    if principal.sous_localite_id:
        localite_id = store.sous_localite_parent(principal.sous_localite_id)
        if localite_id:
            return localite_id

    if principal.section_id:
        localite_id = store.localite_of_section(principal.section_id)
        if localite_id:
            return localite_id

    return None


def resolve_top_level_id(principal: Principal, store: HierarchyStore) -> str | None:
    """Best-effort top-level Localité id. Never raises."""

    if principal.role is Role.SECTION_USER and principal.section_id:
        localite_id = store.localite_of_section(principal.section_id)
        if localite_id:
            return localite_id
    if principal.role is Role.SOUS_LOCALITE_ADMIN and principal.sous_localite_id:
        localite_id = store.sous_localite_parent(principal.sous_localite_id)
        if localite_id:
            return localite_id
    return localite_fallback_chain(principal, store)


def resolve_scope(
    principal: Principal,
    store: HierarchyStore,
    override: ScopeDescriptor | None = None,
) -> AccessScope:
    """
    Map a principal to its `AccessScope`.

    Raises ScopeMissing when the principal has no usable attachment. There is
    no implicit "see everything" or "see nothing" default.

    `override` is only honoured for LOCALITE/OWNER and must name an existing
    node; it is ignored for every other role.
    """

    role = principal.role

    if role is Role.SECTION_USER:
        if not principal.section_id:
            _missing(principal, "section user without section")
        if store.section_parent(principal.section_id) is None:
            _missing(principal, f"unknown section {principal.section_id!r}")
        return AccessScope(
            user_id=principal.user_id,
            role=role,
            descriptor=ScopeDescriptor(ScopeType.SECTION, principal.section_id),
            localite_id=resolve_top_level_id(principal, store),
        )

    if role is Role.SOUS_LOCALITE_ADMIN:
        if not principal.sous_localite_id:
            _missing(principal, "sous-localite admin without sous-localite")
        if store.sous_localite_parent(principal.sous_localite_id) is None:
            _missing(principal, f"unknown sous-localite {principal.sous_localite_id!r}")
        return AccessScope(
            user_id=principal.user_id,
            role=role,
            descriptor=ScopeDescriptor(ScopeType.SOUS_LOCALITE, principal.sous_localite_id),
            localite_id=resolve_top_level_id(principal, store),
        )

    if role in TENANT_WIDE_ROLES:
        if principal.localite_id and not store.localite_exists(principal.localite_id):
            _missing(principal, f"unknown localite {principal.localite_id!r}")
        base = ScopeDescriptor(ScopeType.LOCALITE, principal.localite_id or ALL_LOCALITES)

        if override is not None:
            if not store.node_exists(override.scope_type, override.scope_id):
                _missing(principal, f"override {override.scope_type.value}:{override.scope_id!r} does not exist")
            logger.debug(
                "Scope override user=%s role=%s scope=%s:%s",
                principal.user_id,
                role.value,
                override.scope_type.value,
                override.scope_id,
            )
            return AccessScope(
                user_id=principal.user_id,
                role=role,
                descriptor=override,
                localite_id=store.localite_of(override.scope_type, override.scope_id),
                overridden=True,
            )

        return AccessScope(
            user_id=principal.user_id,
            role=role,
            descriptor=base,
            localite_id=principal.localite_id,
        )

    # COMITE_PEDAGOGIQUE, ORG_UNIT_RESP: anchored to their home Localité.
    home = localite_fallback_chain(principal, store)
    if home is None:
        _missing(principal, "no localite derivable")
    return AccessScope(
        user_id=principal.user_id,
        role=role,
        descriptor=ScopeDescriptor(ScopeType.LOCALITE, home),
        localite_id=home,
    )


def creation_scope(scope: AccessScope, store: HierarchyStore) -> ScopeDescriptor:
    """
    Concrete scope to stamp on a newly created resource.

    A LOCALITE/OWNER principal not pinned to a Localité creates in the first
    Localité of the store.
    """

    if not scope.descriptor.is_all:
        return scope.descriptor

    first = store.first_localite_id()
    if first is None:
        logger.info("No localite available for creation user=%s", scope.user_id)
        raise ScopeMissing("no localite available")
    return ScopeDescriptor(ScopeType.LOCALITE, first)


def _missing(principal: Principal, reason: str) -> NoReturn:
    logger.info("Scope missing user=%s role=%s reason=%s", principal.user_id, principal.role.value, reason)
    raise ScopeMissing(reason)
