"""
Read-only view of the Localité → SousLocalité → Section tree.

The policies never touch the ORM directly: they ask a `HierarchyStore` for
parent links. Production code uses `SqlHierarchyStore`; tests can pass any
in-memory implementation.

Lookups are not wrapped in a transaction with the decision that follows them,
so a concurrent re-parenting may be observed stale.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgscope.models.hierarchy import Localite, Section, SousLocalite
from orgscope.policy.scopes import ScopeType


class HierarchyStore(ABC):
    """Parent-link lookups needed by containment checks."""

    @abstractmethod
    def localite_exists(self, localite_id: str) -> bool: ...

    @abstractmethod
    def sous_localite_parent(self, sous_localite_id: str) -> str | None:
        """Return the Localité id of a SousLocalité, or None if it does not exist."""

    @abstractmethod
    def section_parent(self, section_id: str) -> str | None:
        """Return the SousLocalité id of a Section, or None if it does not exist."""

    @abstractmethod
    def first_localite_id(self) -> str | None: ...

    def localite_of_section(self, section_id: str) -> str | None:
        sous_localite_id = self.section_parent(section_id)
        if sous_localite_id is None:
            return None
        return self.sous_localite_parent(sous_localite_id)

    def node_exists(self, scope_type: ScopeType, scope_id: str | None) -> bool:
        if not scope_id:
            return False
        if scope_type is ScopeType.LOCALITE:
            return self.localite_exists(scope_id)
        if scope_type is ScopeType.SOUS_LOCALITE:
            return self.sous_localite_parent(scope_id) is not None
        return self.section_parent(scope_id) is not None

    def localite_of(self, scope_type: ScopeType, scope_id: str | None) -> str | None:
        """Localité a node ultimately belongs to (None when unknown)."""

        if not scope_id:
            return None
        if scope_type is ScopeType.LOCALITE:
            return scope_id if self.localite_exists(scope_id) else None
        if scope_type is ScopeType.SOUS_LOCALITE:
            return self.sous_localite_parent(scope_id)
        return self.localite_of_section(scope_id)


class SqlHierarchyStore(HierarchyStore):
    """`HierarchyStore` backed by the request's SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def localite_exists(self, localite_id: str) -> bool:
        return self._db.execute(select(Localite.id).where(Localite.id == localite_id)).first() is not None

    def sous_localite_parent(self, sous_localite_id: str) -> str | None:
        return self._db.execute(
            select(SousLocalite.localite_id).where(SousLocalite.id == sous_localite_id)
        ).scalar_one_or_none()

    def section_parent(self, section_id: str) -> str | None:
        return self._db.execute(
            select(Section.sous_localite_id).where(Section.id == section_id)
        ).scalar_one_or_none()

    def first_localite_id(self) -> str | None:
        return self._db.execute(select(Localite.id).order_by(Localite.name, Localite.id).limit(1)).scalar_one_or_none()
