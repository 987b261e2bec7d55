"""
Scoped query builder.

Translates an `AccessScope` into SQLAlchemy boolean clauses that narrow list
queries to the principal's subtree. The clauses mirror `can_view` row for row:
a listing never returns a record that `can_view` would refuse.

Clauses only embed subqueries over `sections` / `sous_localites`; nothing is
fetched while building them.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import ColumnElement, and_, false, or_, select, true

from orgscope.models.hierarchy import Member, Section, SousLocalite
from orgscope.models.resources import BureauPost, Meeting, MeetingType
from orgscope.models.security import User
from orgscope.policy.scopes import AccessScope, Role, ScopeDescriptor, ScopeType

# Roles the visibility policy grants anything to (besides global records).
_VIEWING_ROLES = frozenset({Role.LOCALITE, Role.OWNER, Role.SOUS_LOCALITE_ADMIN, Role.SECTION_USER})


def _sections_of_sous_localite(sous_localite_id: str):
    return select(Section.id).where(Section.sous_localite_id == sous_localite_id)


def _sous_localites_of_localite(localite_id: str):
    return select(SousLocalite.id).where(SousLocalite.localite_id == localite_id)


def _sections_of_localite(localite_id: str):
    return (
        select(Section.id)
        .join(SousLocalite, Section.sous_localite_id == SousLocalite.id)
        .where(SousLocalite.localite_id == localite_id)
    )


def _for_scope(scope: AccessScope, build: Callable[[ScopeDescriptor], ColumnElement[bool]]) -> ColumnElement[bool]:
    if scope.is_tenant_wide:
        return true()
    if scope.role not in _VIEWING_ROLES:
        return false()
    if scope.descriptor.is_all:
        return true()
    return build(scope.descriptor)


def tagged_within(scope_type_col, scope_id_col, descriptor: ScopeDescriptor) -> ColumnElement[bool]:
    """Records tagged `(scope_type, scope_id)` whose node lies inside `descriptor`."""

    if descriptor.is_all:
        return scope_type_col.is_not(None)

    sid = descriptor.scope_id
    if descriptor.scope_type is ScopeType.SECTION:
        return and_(scope_type_col == ScopeType.SECTION.value, scope_id_col == sid)

    if descriptor.scope_type is ScopeType.SOUS_LOCALITE:
        return or_(
            and_(scope_type_col == ScopeType.SOUS_LOCALITE.value, scope_id_col == sid),
            and_(scope_type_col == ScopeType.SECTION.value, scope_id_col.in_(_sections_of_sous_localite(sid))),
        )

    return or_(
        and_(scope_type_col == ScopeType.LOCALITE.value, scope_id_col == sid),
        and_(scope_type_col == ScopeType.SOUS_LOCALITE.value, scope_id_col.in_(_sous_localites_of_localite(sid))),
        and_(scope_type_col == ScopeType.SECTION.value, scope_id_col.in_(_sections_of_localite(sid))),
    )


def _section_fk_within(section_id_col, descriptor: ScopeDescriptor) -> ColumnElement[bool]:
    sid = descriptor.scope_id
    if descriptor.scope_type is ScopeType.SECTION:
        return section_id_col == sid
    if descriptor.scope_type is ScopeType.SOUS_LOCALITE:
        return section_id_col.in_(_sections_of_sous_localite(sid))
    return section_id_col.in_(_sections_of_localite(sid))


# ---- Resource filters -----------------------------------------------------------------


def members_within(descriptor: ScopeDescriptor) -> ColumnElement[bool]:
    """Members whose Section lies inside `descriptor` (bureau group scopes)."""

    if descriptor.is_all:
        return true()
    return _section_fk_within(Member.section_id, descriptor)


def members_filter(scope: AccessScope) -> ColumnElement[bool]:
    return _for_scope(scope, lambda d: _section_fk_within(Member.section_id, d))


def meetings_filter(scope: AccessScope) -> ColumnElement[bool]:
    return _for_scope(scope, lambda d: tagged_within(Meeting.scope_type, Meeting.scope_id, d))


def bureau_posts_filter(scope: AccessScope) -> ColumnElement[bool]:
    return _for_scope(scope, lambda d: tagged_within(BureauPost.scope_type, BureauPost.scope_id, d))


def meeting_types_filter(scope: AccessScope) -> ColumnElement[bool]:
    """
    Union, not equality: global types (null scope) for everyone, plus types
    tagged inside the principal's subtree. For a SOUS_LOCALITE_ADMIN that
    includes the SECTION-tagged types of its Sections.
    """

    return or_(
        MeetingType.scope_type.is_(None),
        _for_scope(scope, lambda d: tagged_within(MeetingType.scope_type, MeetingType.scope_id, d)),
    )


def users_within(descriptor: ScopeDescriptor) -> ColumnElement[bool]:
    """Accounts attached anywhere inside `descriptor`."""

    if descriptor.is_all:
        return true()
    sid = descriptor.scope_id
    if descriptor.scope_type is ScopeType.SECTION:
        return User.section_id == sid
    if descriptor.scope_type is ScopeType.SOUS_LOCALITE:
        return or_(User.sous_localite_id == sid, User.section_id.in_(_sections_of_sous_localite(sid)))
    return or_(
        User.localite_id == sid,
        User.sous_localite_id.in_(_sous_localites_of_localite(sid)),
        User.section_id.in_(_sections_of_localite(sid)),
    )


def users_filter(scope: AccessScope) -> ColumnElement[bool]:
    return _for_scope(scope, users_within)


# ---- Hierarchy filters ----------------------------------------------------------------


def sections_filter(scope: AccessScope) -> ColumnElement[bool]:
    def build(d: ScopeDescriptor) -> ColumnElement[bool]:
        if d.scope_type is ScopeType.SECTION:
            return Section.id == d.scope_id
        if d.scope_type is ScopeType.SOUS_LOCALITE:
            return Section.sous_localite_id == d.scope_id
        return Section.sous_localite_id.in_(_sous_localites_of_localite(d.scope_id))

    return _for_scope(scope, build)


def sous_localites_filter(scope: AccessScope) -> ColumnElement[bool]:
    def build(d: ScopeDescriptor) -> ColumnElement[bool]:
        if d.scope_type is ScopeType.SECTION:
            # A SousLocalité sits above a Section scope.
            return false()
        if d.scope_type is ScopeType.SOUS_LOCALITE:
            return SousLocalite.id == d.scope_id
        return SousLocalite.localite_id == d.scope_id

    return _for_scope(scope, build)


# Filters applied transparently to list routes flagged `scoped` (see orgscope.db.filters).
SCOPED_MODELS: dict[type, Callable[[AccessScope], ColumnElement[bool]]] = {
    Member: members_filter,
    Meeting: meetings_filter,
    MeetingType: meeting_types_filter,
    BureauPost: bureau_posts_filter,
    User: users_filter,
}
