from __future__ import annotations

from collections import Counter
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import ColumnElement, func, select
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.hierarchy import Member, Section, SousLocalite
from orgscope.models.resources import Meeting, MeetingType
from orgscope.models.security import User
from orgscope.policy import NotFound, ScopeDescriptor, ScopeType, TargetScope, ensure_can_view
from orgscope.policy.eligibility import resolve_bracket
from orgscope.policy.queries import meetings_filter, sections_filter, sous_localites_filter, tagged_within, users_filter
from orgscope.policy.store import HierarchyStore
from orgscope.schemas.stats import (
    GlobalStats,
    PresenceTotals,
    SectionStats,
    SectionSummary,
    SousLocaliteStats,
    TypeStats,
)
from orgscope.security.context import AccessContext
from orgscope.security.decorators import require_roles
from orgscope.security.dependencies import get_access, get_store

router = APIRouter(prefix="/stats", tags=["stats"])


def _average(total: int, count: int) -> float:
    return round(total / count, 1) if count else 0.0


def _totals(db: Session, where: ColumnElement[bool]) -> PresenceTotals:
    meetings, men, women, total = db.execute(
        select(
            func.count(Meeting.id),
            func.coalesce(func.sum(Meeting.presence_men), 0),
            func.coalesce(func.sum(Meeting.presence_women), 0),
            func.coalesce(func.sum(Meeting.presence_total), 0),
        ).where(where)
    ).one()
    return PresenceTotals(
        meetings=meetings,
        presence_men=men,
        presence_women=women,
        presence_total=total,
        average_men=_average(men, meetings),
        average_women=_average(women, meetings),
        average_total=_average(total, meetings),
    )


def _by_type(db: Session, where: ColumnElement[bool]) -> list[TypeStats]:
    rows = db.execute(
        select(MeetingType.id, MeetingType.name, func.count(Meeting.id), func.coalesce(func.sum(Meeting.presence_total), 0))
        .join(Meeting, Meeting.type_id == MeetingType.id)
        .where(where)
        .group_by(MeetingType.id, MeetingType.name)
        .order_by(MeetingType.name)
    ).all()
    return [
        TypeStats(type_id=type_id, type_name=name, meetings=count, presence_total=presence)
        for type_id, name, count, presence in rows
    ]


def _count(db: Session, column, where: ColumnElement[bool]) -> int:
    return db.execute(select(func.count(column)).where(where)).scalar_one()


@router.get("/sections/{id}", response_model=SectionStats)
@require_roles(["LOCALITE", "OWNER", "SOUS_LOCALITE_ADMIN", "SECTION_USER"])
def section_stats(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> SectionStats:
    section = db.get(Section, id)
    if section is None:
        raise NotFound("Section not found")
    ensure_can_view(access.scope, TargetScope.section(section.id), store)

    in_section = Meeting.section_id == section.id

    today = date.today()
    brackets: Counter[str] = Counter({"S1": 0, "S2": 0, "S3": 0, "UNKNOWN": 0})
    genders: Counter[str] = Counter()
    for member in db.scalars(select(Member).where(Member.section_id == section.id)):
        bracket = resolve_bracket(member, today)
        brackets[bracket.value if bracket else "UNKNOWN"] += 1
        genders[member.gender or "UNKNOWN"] += 1

    return SectionStats(
        section_id=section.id,
        section_name=section.name,
        totals=_totals(db, in_section),
        by_type=_by_type(db, in_section),
        members_by_bracket=dict(brackets),
        members_by_gender=dict(genders),
    )


@router.get("/sous-localites/{id}", response_model=SousLocaliteStats)
@require_roles(["LOCALITE", "OWNER", "SOUS_LOCALITE_ADMIN"])
def sous_localite_stats(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> SousLocaliteStats:
    """
    Aggregates over the SousLocalité subtree.

    Totals include meetings tagged on the SousLocalité itself; `by_section`
    only counts those held by each Section.
    """

    sous_localite = db.get(SousLocalite, id)
    if sous_localite is None:
        raise NotFound("SousLocalite not found")
    ensure_can_view(access.scope, TargetScope.sous_localite(sous_localite.id), store)

    in_subtree = tagged_within(
        Meeting.scope_type, Meeting.scope_id, ScopeDescriptor(ScopeType.SOUS_LOCALITE, sous_localite.id)
    )
    sections = db.execute(
        select(Section.id, Section.name, func.count(Meeting.id), func.coalesce(func.sum(Meeting.presence_total), 0))
        .outerjoin(Meeting, Meeting.section_id == Section.id)
        .where(Section.sous_localite_id == sous_localite.id)
        .group_by(Section.id, Section.name)
        .order_by(Section.name)
    ).all()

    return SousLocaliteStats(
        sous_localite_id=sous_localite.id,
        sous_localite_name=sous_localite.name,
        sections=len(sections),
        totals=_totals(db, in_subtree),
        by_section=[
            SectionSummary(section_id=section_id, section_name=name, meetings=count, presence_total=presence)
            for section_id, name, count, presence in sections
        ],
        by_type=_by_type(db, in_subtree),
    )


@router.get("/global", response_model=GlobalStats)
@require_roles(["LOCALITE", "OWNER"])
def global_stats(
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> GlobalStats:
    # Tenant-wide for LOCALITE/OWNER; an override narrows every count to its subtree.
    scope = access.scope
    visible = meetings_filter(scope)
    return GlobalStats(
        sous_localites=_count(db, SousLocalite.id, sous_localites_filter(scope)),
        sections=_count(db, Section.id, sections_filter(scope)),
        users=_count(db, User.id, users_filter(scope)),
        totals=_totals(db, visible),
        by_type=_by_type(db, visible),
    )
