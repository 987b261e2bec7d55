"""Test doubles and small builders shared by the test modules."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from orgscope.policy.scopes import AccessScope, Principal, Role, ScopeDescriptor, ScopeType
from orgscope.policy.store import HierarchyStore


class FakeHierarchyStore(HierarchyStore):
    """In-memory tree; counts lookups so tests can assert nothing is cached."""

    def __init__(self, sous_localites: dict[str, str], sections: dict[str, str], localites: list[str]):
        self.sous_localites = dict(sous_localites)  # sous_localite_id -> localite_id
        self.sections = dict(sections)  # section_id -> sous_localite_id
        self.localites = list(localites)
        self.lookups = 0

    def localite_exists(self, localite_id: str) -> bool:
        self.lookups += 1
        return localite_id in self.localites

    def sous_localite_parent(self, sous_localite_id: str) -> str | None:
        self.lookups += 1
        return self.sous_localites.get(sous_localite_id)

    def section_parent(self, section_id: str) -> str | None:
        self.lookups += 1
        return self.sections.get(section_id)

    def first_localite_id(self) -> str | None:
        return self.localites[0] if self.localites else None


def make_scope(role: Role, scope_type: ScopeType, scope_id: str, overridden: bool = False) -> AccessScope:
    return AccessScope(
        user_id=f"u-{role.value.lower()}",
        role=role,
        descriptor=ScopeDescriptor(scope_type, scope_id),
        localite_id=scope_id if scope_type is ScopeType.LOCALITE else None,
        overridden=overridden,
    )


def principal(role: Role, **attachments) -> Principal:
    return Principal(user_id=f"u-{role.value.lower()}", role=role, **attachments)


def bearer(user_id: str, expires_in: int = 3600) -> dict[str, str]:
    from orgscope.settings import get_settings

    settings = get_settings()
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": user_id, "iat": now, "exp": now + timedelta(seconds=expires_in)},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}"}
