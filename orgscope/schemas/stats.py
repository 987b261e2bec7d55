from __future__ import annotations

from pydantic import BaseModel


class PresenceTotals(BaseModel):
    meetings: int
    presence_men: int
    presence_women: int
    presence_total: int
    average_men: float
    average_women: float
    average_total: float


class TypeStats(BaseModel):
    type_id: str
    type_name: str
    meetings: int
    presence_total: int


class SectionStats(BaseModel):
    section_id: str
    section_name: str
    totals: PresenceTotals
    by_type: list[TypeStats]
    # Keys: S1, S2, S3 and UNKNOWN when no bracket can be resolved.
    members_by_bracket: dict[str, int]
    members_by_gender: dict[str, int]


class SectionSummary(BaseModel):
    section_id: str
    section_name: str
    meetings: int
    presence_total: int


class SousLocaliteStats(BaseModel):
    sous_localite_id: str
    sous_localite_name: str
    sections: int
    totals: PresenceTotals
    by_section: list[SectionSummary]
    by_type: list[TypeStats]


class GlobalStats(BaseModel):
    """Totals over everything the caller can see."""

    sous_localites: int
    sections: int
    users: int
    totals: PresenceTotals
    by_type: list[TypeStats]
