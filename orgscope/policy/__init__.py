"""
Hierarchy scope and access-control engine.

Pure policy code: no FastAPI, and storage is only reached through an injected
`HierarchyStore`. Route handlers call, in order:

    resolve_scope(principal, store)        -> AccessScope | ScopeMissing
    can_view / ensure_can_view             -> read gate
    can_mutate / ensure_can_mutate         -> write gate
    classify_eligibility / ensure_eligible -> bureau assignment gate

List routes narrow their queries with the filters in `orgscope.policy.queries`.
"""

from .eligibility import AgeBracket, AgeGroup, BureauGroup, Eligibility, classify_eligibility, ensure_eligible
from .errors import AccessError, Forbidden, IneligibleMember, MeetingLocked, NotFound, OutOfScope, ScopeMissing
from .mutation import can_mutate, ensure_can_mutate, ensure_within_edit_window
from .resolver import creation_scope, localite_fallback_chain, resolve_scope, resolve_top_level_id
from .scopes import ALL_LOCALITES, AccessScope, Principal, Role, ScopeDescriptor, ScopeType, TargetScope
from .store import HierarchyStore, SqlHierarchyStore
from .visibility import can_view, contains, ensure_can_view

__all__ = [
    "ALL_LOCALITES",
    "AccessError",
    "AccessScope",
    "AgeBracket",
    "AgeGroup",
    "BureauGroup",
    "Eligibility",
    "Forbidden",
    "HierarchyStore",
    "IneligibleMember",
    "MeetingLocked",
    "NotFound",
    "OutOfScope",
    "Principal",
    "Role",
    "ScopeDescriptor",
    "ScopeMissing",
    "ScopeType",
    "SqlHierarchyStore",
    "TargetScope",
    "can_mutate",
    "can_view",
    "classify_eligibility",
    "contains",
    "creation_scope",
    "ensure_can_mutate",
    "ensure_can_view",
    "ensure_eligible",
    "ensure_within_edit_window",
    "localite_fallback_chain",
    "resolve_scope",
    "resolve_top_level_id",
]
