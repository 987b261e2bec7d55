from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from orgscope.schemas.hierarchy import NonBlank


class BureauPostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    scope_type: str
    scope_id: str
    age_group: str
    created_at: datetime


class BureauPostCreate(BaseModel):
    name: NonBlank
    age_group: Literal["S1S2", "S3"]


class EligibleMemberOut(BaseModel):
    id: str
    section_id: str
    first_name: str
    last_name: str
    gender: str | None
    birth_date: date | None
    # Effective bracket: explicit tag, else computed from birth_date.
    age_bracket: str


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    post_id: str
    member_id: str
    kind: str
    slot_type: str
    slot_index: int


class PostWithAssignments(BureauPostOut):
    assignments: list[AssignmentOut]


class AssignmentUpsert(BaseModel):
    post_id: str
    kind: Literal["TITULAIRE", "ADJOINT"]
    slot_type: Literal["PRIMARY", "EXTRA"] = "EXTRA"
    slot_index: int = Field(default=0, ge=0)
    # Empty or missing clears the slot.
    member_id: str | None = None


class AssignmentResult(BaseModel):
    assignment: AssignmentOut | None
    cleared: bool = False
