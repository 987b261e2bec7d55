"""
Read access.

The containment relation LOCALITE ⊇ SOUS_LOCALITE ⊇ SECTION is written once,
in `contains`, and reused by the mutation policy and the eligibility
classifier.
"""

from __future__ import annotations

import logging

from orgscope.policy.errors import Forbidden
from orgscope.policy.scopes import SCOPE_DEPTH, AccessScope, Role, ScopeDescriptor, ScopeType, TargetScope
from orgscope.policy.store import HierarchyStore

logger = logging.getLogger(__name__)


def contains(descriptor: ScopeDescriptor, target: TargetScope, store: HierarchyStore) -> bool:
    """
    True iff the target's node lies inside the subtree rooted at `descriptor`.

    Global targets belong to no subtree and are never contained.
    """

    if target.is_global or not target.scope_id:
        return False

    if SCOPE_DEPTH[target.scope_type] < descriptor.depth:
        # Nothing above the principal's own level is ever contained.
        return False

    if descriptor.scope_type is ScopeType.LOCALITE:
        if descriptor.is_all:
            return True
        return store.localite_of(target.scope_type, target.scope_id) == descriptor.scope_id

    if descriptor.scope_type is ScopeType.SOUS_LOCALITE:
        if target.scope_type is ScopeType.SOUS_LOCALITE:
            return target.scope_id == descriptor.scope_id
        return store.section_parent(target.scope_id) == descriptor.scope_id

    return target.scope_type is ScopeType.SECTION and target.scope_id == descriptor.scope_id


def can_view(scope: AccessScope, target: TargetScope, store: HierarchyStore) -> bool:
    """
    Read access decision.

    - LOCALITE / OWNER: everything, or the override subtree when one was requested
    - SOUS_LOCALITE_ADMIN: own SousLocalité and its Sections
    - SECTION_USER: own Section only
    - global (untagged) targets: every resolved principal
    - anything else: denied
    """

    if target.is_global:
        return True

    if scope.is_tenant_wide:
        return True

    if scope.role in (Role.LOCALITE, Role.OWNER, Role.SOUS_LOCALITE_ADMIN, Role.SECTION_USER):
        allowed = contains(scope.descriptor, target, store)
    else:
        allowed = False

    if not allowed:
        logger.debug(
            "View denied user=%s role=%s scope=%s:%s target=%s:%s",
            scope.user_id,
            scope.role.value,
            scope.descriptor.scope_type.value,
            scope.descriptor.scope_id,
            target.scope_type.value if target.scope_type else None,
            target.scope_id,
        )
    return allowed


def ensure_can_view(scope: AccessScope, target: TargetScope, store: HierarchyStore) -> None:
    if not can_view(scope, target, store):
        raise Forbidden("target outside of the principal's subtree")
