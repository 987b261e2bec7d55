"""
Scoped list filters against SQLite.

Every filter must agree with `can_view`: a listing never returns a record the
read gate would refuse, and never hides one it would allow.
"""
from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from helpers import make_scope
from orgscope.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from orgscope.models.hierarchy import Member, Section, SousLocalite
from orgscope.models.resources import Meeting, MeetingType
from orgscope.models.security import User
from orgscope.policy import Role, ScopeType, SqlHierarchyStore, TargetScope, can_view
from orgscope.policy.queries import (
    meeting_types_filter,
    meetings_filter,
    members_filter,
    members_within,
    sections_filter,
    sous_localites_filter,
    users_filter,
)
from orgscope.policy.scopes import Principal, ScopeDescriptor
from orgscope.security.context import AccessContext

SCOPES = {
    "owner": make_scope(Role.OWNER, ScopeType.LOCALITE, "*"),
    "localite": make_scope(Role.LOCALITE, ScopeType.LOCALITE, "loc-1"),
    "localite_override": make_scope(Role.LOCALITE, ScopeType.LOCALITE, "loc-2", overridden=True),
    "sl_admin": make_scope(Role.SOUS_LOCALITE_ADMIN, ScopeType.SOUS_LOCALITE, "sl-1"),
    "section": make_scope(Role.SECTION_USER, ScopeType.SECTION, "sec-1"),
    "other_section": make_scope(Role.SECTION_USER, ScopeType.SECTION, "sec-3"),
    "comite": make_scope(Role.COMITE_PEDAGOGIQUE, ScopeType.LOCALITE, "loc-1"),
}


@pytest.fixture
def resources(db_session, hierarchy):
    db_session.add_all(
        [
            Member(id="m-1", section_id="sec-1", first_name="Awa", last_name="Diop"),
            Member(id="m-2", section_id="sec-2", first_name="Moussa", last_name="Fall"),
            Member(id="m-3", section_id="sec-3", first_name="Fatou", last_name="Ndiaye"),
            Member(id="m-4", section_id="sec-4", first_name="Ousmane", last_name="Gueye"),
        ]
    )
    db_session.add_all(
        [
            MeetingType(id="t-global", name="Causerie"),
            MeetingType(id="t-loc1", name="Assemblee", scope_type="LOCALITE", scope_id="loc-1"),
            MeetingType(id="t-loc2", name="Assemblee Thies", scope_type="LOCALITE", scope_id="loc-2"),
            MeetingType(id="t-sl1", name="Coordination", scope_type="SOUS_LOCALITE", scope_id="sl-1"),
            MeetingType(id="t-sec1", name="Veillee", scope_type="SECTION", scope_id="sec-1"),
            MeetingType(id="t-sec3", name="Veillee Medina", scope_type="SECTION", scope_id="sec-3"),
        ]
    )
    db_session.flush()

    tagged = [
        ("mt-loc1", "LOCALITE", "loc-1", None),
        ("mt-sl1", "SOUS_LOCALITE", "sl-1", None),
        ("mt-sl2", "SOUS_LOCALITE", "sl-2", None),
        ("mt-sec1", "SECTION", "sec-1", "sec-1"),
        ("mt-sec2", "SECTION", "sec-2", "sec-2"),
        ("mt-sec4", "SECTION", "sec-4", "sec-4"),
    ]
    db_session.add_all(
        [
            Meeting(
                id=meeting_id,
                type_id="t-global",
                scope_type=scope_type,
                scope_id=scope_id,
                section_id=section_id,
                held_on=date(2024, 5, 4),
                created_by_id="u-owner",
            )
            for meeting_id, scope_type, scope_id, section_id in tagged
        ]
    )
    db_session.commit()


def _ids(db_session, model, clause) -> set[str]:
    return set(db_session.scalars(select(model.id).where(clause)))


@pytest.mark.parametrize("name", sorted(SCOPES))
def test_meeting_listing_agrees_with_can_view(db_session, resources, name):
    scope = SCOPES[name]
    store = SqlHierarchyStore(db_session)

    listed = _ids(db_session, Meeting, meetings_filter(scope))
    allowed = {
        meeting.id for meeting in db_session.scalars(select(Meeting)) if can_view(scope, TargetScope.of(meeting), store)
    }

    assert listed == allowed


@pytest.mark.parametrize("name", sorted(SCOPES))
def test_member_listing_agrees_with_can_view(db_session, resources, name):
    scope = SCOPES[name]
    store = SqlHierarchyStore(db_session)

    listed = _ids(db_session, Member, members_filter(scope))
    allowed = {
        member.id for member in db_session.scalars(select(Member)) if can_view(scope, TargetScope.of_member(member), store)
    }

    assert listed == allowed


def test_member_listing_by_level(db_session, resources):
    assert _ids(db_session, Member, members_filter(SCOPES["sl_admin"])) == {"m-1", "m-2"}
    assert _ids(db_session, Member, members_filter(SCOPES["section"])) == {"m-1"}
    assert _ids(db_session, Member, members_filter(SCOPES["localite_override"])) == {"m-4"}
    assert _ids(db_session, Member, members_filter(SCOPES["comite"])) == set()
    assert len(_ids(db_session, Member, members_filter(SCOPES["localite"]))) == 4


@pytest.mark.parametrize(
    "name, expected",
    [
        ("owner", {"t-global", "t-loc1", "t-loc2", "t-sl1", "t-sec1", "t-sec3"}),
        ("sl_admin", {"t-global", "t-sl1", "t-sec1"}),
        ("section", {"t-global", "t-sec1"}),
        ("other_section", {"t-global", "t-sec3"}),
        ("localite_override", {"t-global", "t-loc2"}),
        ("comite", {"t-global"}),
    ],
)
def test_meeting_type_union(db_session, resources, name, expected):
    assert _ids(db_session, MeetingType, meeting_types_filter(SCOPES[name])) == expected


def test_users_within_sous_localite(db_session, resources):
    assert _ids(db_session, User, users_filter(SCOPES["sl_admin"])) == {"u-sl1", "u-sec1"}
    assert _ids(db_session, User, users_filter(SCOPES["other_section"])) == {"u-sec3"}


def test_users_within_localite_override(db_session, resources):
    assert _ids(db_session, User, users_filter(SCOPES["localite_override"])) == {"u-sec4"}


def test_hierarchy_filters(db_session, resources):
    assert _ids(db_session, Section, sections_filter(SCOPES["sl_admin"])) == {"sec-1", "sec-2"}
    assert _ids(db_session, Section, sections_filter(SCOPES["localite_override"])) == {"sec-4"}
    assert _ids(db_session, SousLocalite, sous_localites_filter(SCOPES["sl_admin"])) == {"sl-1"}
    assert _ids(db_session, SousLocalite, sous_localites_filter(SCOPES["section"])) == set()
    assert _ids(db_session, SousLocalite, sous_localites_filter(SCOPES["owner"])) == {"sl-1", "sl-2", "sl-3"}


def test_members_within_group_scope(db_session, resources):
    assert _ids(db_session, Member, members_within(ScopeDescriptor(ScopeType.LOCALITE, "loc-1"))) == {"m-1", "m-2", "m-3"}
    assert _ids(db_session, Member, members_within(ScopeDescriptor(ScopeType.LOCALITE, "*"))) == {"m-1", "m-2", "m-3", "m-4"}


class TestTransparentScoping:
    """`orgscope.db.filters` narrows plain selects when the session carries a scoped access context."""

    def _attach(self, db_session, scope, scoped_listing=True):
        principal = Principal(user_id=scope.user_id, role=scope.role)
        db_session.info["access"] = AccessContext(principal=principal, scope=scope, scoped_listing=scoped_listing)

    def test_plain_select_is_narrowed(self, db_session, resources):
        self._attach(db_session, SCOPES["sl_admin"])
        try:
            members = db_session.scalars(select(Member)).all()
            types = db_session.scalars(select(MeetingType)).all()
        finally:
            db_session.info.pop("access", None)

        assert {m.id for m in members} == {"m-1", "m-2"}
        assert {t.id for t in types} == {"t-global", "t-sl1", "t-sec1"}

    def test_unscoped_route_is_not_narrowed(self, db_session, resources):
        self._attach(db_session, SCOPES["section"], scoped_listing=False)
        try:
            members = db_session.scalars(select(Member)).all()
        finally:
            db_session.info.pop("access", None)

        assert len(members) == 4

    def test_session_without_access_is_not_narrowed(self, db_session, resources):
        assert len(db_session.scalars(select(Meeting)).all()) == 6
