"""
Write access (create / update / delete).

Strictly narrower than read access: on top of `can_view`, the target must be
tagged at the principal's own level and with the principal's own scope id.
A SOUS_LOCALITE_ADMIN may read the Sections of its subtree but only writes
SOUS_LOCALITE-tagged records. OWNER bypasses the level check
and writes anything it can read.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging

from orgscope.policy.errors import Forbidden, MeetingLocked
from orgscope.policy.scopes import ROLE_MUTATION_LEVEL, AccessScope, Role, TargetScope
from orgscope.policy.store import HierarchyStore
from orgscope.policy.visibility import can_view

logger = logging.getLogger(__name__)


def can_mutate(scope: AccessScope, target: TargetScope, store: HierarchyStore) -> bool:
    if scope.role is Role.OWNER:
        # No level restriction, but an override still bounds what is reachable.
        return can_view(scope, target, store)

    if not can_view(scope, target, store):
        return False

    if target.is_global:
        # Global records belong to the top level.
        return scope.role is Role.LOCALITE

    level = ROLE_MUTATION_LEVEL.get(scope.role)
    if level is None or target.scope_type is not level:
        return False

    if scope.descriptor.is_all:
        return True
    return target.scope_id == scope.descriptor.scope_id


def ensure_can_mutate(scope: AccessScope, target: TargetScope, store: HierarchyStore) -> None:
    """Raise Forbidden unless `scope` may write `target`. Call only for existing or about-to-exist records."""

    if not can_mutate(scope, target, store):
        logger.info(
            "Mutation denied user=%s role=%s scope=%s:%s target=%s:%s",
            scope.user_id,
            scope.role.value,
            scope.descriptor.scope_type.value,
            scope.descriptor.scope_id,
            target.scope_type.value if target.scope_type else None,
            target.scope_id,
        )
        raise Forbidden("write outside of the principal's own scope")


def ensure_within_edit_window(
    scope: AccessScope,
    created_at: datetime,
    window: timedelta,
    now: datetime | None = None,
) -> None:
    """Meetings freeze once older than `window`; OWNER is exempt."""

    if scope.role is Role.OWNER:
        return

    if created_at.tzinfo is None:
        # Stored timestamps are naive UTC.
        created_at = created_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)

    if now - created_at > window:
        logger.info("Meeting locked user=%s created_at=%s window=%s", scope.user_id, created_at.isoformat(), window)
        raise MeetingLocked(f"meetings can no longer be changed after {window}")
