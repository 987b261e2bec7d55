"""
Bureau-post eligibility: age bracket + scope membership.

Brackets:
    S1  age < 12
    S2  12 <= age < 18
    S3  age >= 18

An explicit, valid bracket stored on the member always wins over the value
computed from the birth date, even when the two disagree.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
import logging

from orgscope.policy.errors import IneligibleMember, OutOfScope
from orgscope.policy.scopes import ScopeDescriptor, ScopeType, TargetScope
from orgscope.policy.store import HierarchyStore
from orgscope.policy.visibility import contains

logger = logging.getLogger(__name__)


class AgeBracket(str, Enum):
    S1 = "S1"
    S2 = "S2"
    S3 = "S3"


class AgeGroup(str, Enum):
    S1S2 = "S1S2"
    S3 = "S3"


class Eligibility(str, Enum):
    ELIGIBLE = "ELIGIBLE"
    INELIGIBLE_MEMBER = "INELIGIBLE_MEMBER"
    OUT_OF_SCOPE = "OUT_OF_SCOPE"


_GROUP_BRACKETS: dict[AgeGroup, frozenset[AgeBracket]] = {
    AgeGroup.S1S2: frozenset({AgeBracket.S1, AgeBracket.S2}),
    AgeGroup.S3: frozenset({AgeBracket.S3}),
}


@dataclass(frozen=True)
class BureauGroup:
    """Target of an assignment: an age group inside a hierarchy scope."""

    age_group: AgeGroup
    scope_type: ScopeType
    scope_id: str

    @classmethod
    def of_post(cls, post: object) -> BureauGroup:
        return cls(
            age_group=AgeGroup(getattr(post, "age_group")),
            scope_type=ScopeType(getattr(post, "scope_type")),
            scope_id=getattr(post, "scope_id"),
        )

    @property
    def descriptor(self) -> ScopeDescriptor:
        return ScopeDescriptor(self.scope_type, self.scope_id)


def parse_age_group(value: object) -> AgeGroup | None:
    raw = str(value if value is not None else "").strip().upper()
    try:
        return AgeGroup(raw)
    except ValueError:
        return None


def normalize_bracket(value: object) -> AgeBracket | None:
    raw = str(value if value is not None else "").strip().upper()
    try:
        return AgeBracket(raw)
    except ValueError:
        return None


def compute_age(birth_date: date, today: date) -> int:
    """
    Exact age in years: the year difference, minus one when today's
    month/day precedes the birth month/day.

    Raises ValueError for a birth date in the future (negative age).
    """

    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    if age < 0:
        raise ValueError(f"birth date {birth_date.isoformat()} is after {today.isoformat()}")
    return age


def bracket_for_age(age: int) -> AgeBracket:
    if age < 12:
        return AgeBracket.S1
    if age < 18:
        return AgeBracket.S2
    return AgeBracket.S3


def _coerce_date(value: object) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def resolve_bracket(member: object, today: date | None = None) -> AgeBracket | None:
    """
    Effective bracket of a member, or None when it cannot be resolved
    (no valid tag and no usable birth date).
    """

    explicit = normalize_bracket(getattr(member, "age_bracket", None))
    if explicit is not None:
        return explicit

    birth_date = _coerce_date(getattr(member, "birth_date", None))
    if birth_date is None:
        return None

    try:
        age = compute_age(birth_date, today or date.today())
    except ValueError:
        logger.debug("Unusable birth date member=%s", getattr(member, "id", None))
        return None
    return bracket_for_age(age)


def in_age_group(member: object, age_group: AgeGroup, today: date | None = None) -> bool:
    bracket = resolve_bracket(member, today)
    return bracket is not None and bracket in _GROUP_BRACKETS[age_group]


def classify_eligibility(
    member: object,
    group: BureauGroup,
    store: HierarchyStore,
    today: date | None = None,
) -> Eligibility:
    """Bracket check first, then scope containment; both must pass."""

    if not in_age_group(member, group.age_group, today):
        return Eligibility.INELIGIBLE_MEMBER

    if not contains(group.descriptor, TargetScope.of_member(member), store):
        return Eligibility.OUT_OF_SCOPE

    return Eligibility.ELIGIBLE


def ensure_eligible(
    member: object,
    group: BureauGroup,
    store: HierarchyStore,
    today: date | None = None,
) -> None:
    outcome = classify_eligibility(member, group, store, today)
    if outcome is Eligibility.INELIGIBLE_MEMBER:
        raise IneligibleMember(f"member not eligible for group {group.age_group.value}")
    if outcome is Eligibility.OUT_OF_SCOPE:
        raise OutOfScope(f"member outside of {group.scope_type.value.lower()} scope")
