"""
Scope vocabulary shared by the resolver, the policies and the query builder.

Everything here is plain data: no database access, no FastAPI.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ScopeType(str, Enum):
    LOCALITE = "LOCALITE"
    SOUS_LOCALITE = "SOUS_LOCALITE"
    SECTION = "SECTION"


class Role(str, Enum):
    LOCALITE = "LOCALITE"
    SOUS_LOCALITE_ADMIN = "SOUS_LOCALITE_ADMIN"
    SECTION_USER = "SECTION_USER"
    OWNER = "OWNER"
    COMITE_PEDAGOGIQUE = "COMITE_PEDAGOGIQUE"
    ORG_UNIT_RESP = "ORG_UNIT_RESP"


# Scope id carried by LOCALITE/OWNER principals that are not pinned to a Localité.
ALL_LOCALITES = "*"

# Roles with full tenant visibility.
TENANT_WIDE_ROLES = frozenset({Role.LOCALITE, Role.OWNER})

# Level at which each role may create or modify resources.
ROLE_MUTATION_LEVEL: dict[Role, ScopeType] = {
    Role.LOCALITE: ScopeType.LOCALITE,
    Role.SOUS_LOCALITE_ADMIN: ScopeType.SOUS_LOCALITE,
    Role.SECTION_USER: ScopeType.SECTION,
}

SCOPE_DEPTH = {ScopeType.LOCALITE: 0, ScopeType.SOUS_LOCALITE: 1, ScopeType.SECTION: 2}


def parse_scope_type(value: object) -> ScopeType | None:
    """Lenient parser for query/body values ("section", " SECTION ", ...)."""

    raw = str(value if value is not None else "").strip().upper()
    try:
        return ScopeType(raw)
    except ValueError:
        return None


def parse_role(value: object) -> Role | None:
    raw = str(value if value is not None else "").strip().upper()
    try:
        return Role(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class ScopeDescriptor:
    """A `(level, id)` pair naming the subtree a principal is anchored to."""

    scope_type: ScopeType
    scope_id: str

    @property
    def is_all(self) -> bool:
        return self.scope_type is ScopeType.LOCALITE and self.scope_id == ALL_LOCALITES

    @property
    def depth(self) -> int:
        return SCOPE_DEPTH[self.scope_type]


@dataclass(frozen=True)
class TargetScope:
    """
    Scope of the record being read or written.

    `scope_type=None` marks a global (untagged) record such as a global
    meeting type.
    """

    scope_type: ScopeType | None
    scope_id: str | None = None

    @property
    def is_global(self) -> bool:
        return self.scope_type is None

    @classmethod
    def global_(cls) -> TargetScope:
        return cls(scope_type=None, scope_id=None)

    @classmethod
    def section(cls, section_id: str) -> TargetScope:
        return cls(ScopeType.SECTION, section_id)

    @classmethod
    def sous_localite(cls, sous_localite_id: str) -> TargetScope:
        return cls(ScopeType.SOUS_LOCALITE, sous_localite_id)

    @classmethod
    def localite(cls, localite_id: str) -> TargetScope:
        return cls(ScopeType.LOCALITE, localite_id)

    @classmethod
    def of(cls, record: object) -> TargetScope:
        """Build from any record carrying `scope_type` / `scope_id` columns."""

        raw_type = getattr(record, "scope_type", None)
        if raw_type is None:
            return cls.global_()
        return cls(ScopeType(raw_type), getattr(record, "scope_id", None))

    @classmethod
    def of_member(cls, member: object) -> TargetScope:
        # Members are anchored to their Section for life.
        return cls.section(getattr(member, "section_id"))


@dataclass(frozen=True)
class Principal:
    """
    Verified identity handed over by the authentication layer.

    Only the attachment matching the role is meaningful; the others may be
    populated by legacy rows and are ignored by the resolver (except for the
    Localité fallback chain).
    """

    user_id: str
    role: Role
    localite_id: str | None = None
    sous_localite_id: str | None = None
    section_id: str | None = None

    @classmethod
    def from_user(cls, user: object) -> Principal:
        role = parse_role(getattr(user, "role"))
        if role is None:
            raise ValueError(f"unknown role {getattr(user, 'role')!r}")
        return cls(
            user_id=str(getattr(user, "id")),
            role=role,
            localite_id=getattr(user, "localite_id", None),
            sous_localite_id=getattr(user, "sous_localite_id", None),
            section_id=getattr(user, "section_id", None),
        )


@dataclass(frozen=True)
class AccessScope:
    """
    Outcome of scope resolution for one request.

    - `descriptor`: canonical scope (possibly an override for LOCALITE/OWNER)
    - `localite_id`: best-effort top-level Localité, `None` when unknown
    - `overridden`: True when the descriptor comes from an explicit override
    """

    user_id: str
    role: Role
    descriptor: ScopeDescriptor
    localite_id: str | None = None
    overridden: bool = False

    @property
    def is_tenant_wide(self) -> bool:
        return self.role in TENANT_WIDE_ROLES and not self.overridden
