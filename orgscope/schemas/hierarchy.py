from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from orgscope.schemas.security import UserOut


def _strip_required(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError("must not be blank")
    return cleaned


NonBlank = Annotated[str, AfterValidator(_strip_required)]

Gender = Literal["HOMME", "FEMME"]
Bracket = Literal["S1", "S2", "S3"]


class SousLocaliteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    localite_id: str
    created_at: datetime


class SousLocaliteCreate(BaseModel):
    name: NonBlank
    # Defaults to the caller's own Localité.
    localite_id: str | None = None


class SousLocaliteUpdate(BaseModel):
    # Renaming only: the parent link never changes.
    model_config = ConfigDict(extra="forbid")

    name: NonBlank


class SectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    sous_localite_id: str
    created_at: datetime


class SectionUserCreate(BaseModel):
    email: NonBlank
    name: NonBlank


class SectionCreate(BaseModel):
    name: NonBlank
    sous_localite_id: str
    # Optional first SECTION_USER, created in the same transaction.
    user: SectionUserCreate | None = None


class SectionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: NonBlank


class SectionCreated(BaseModel):
    section: SectionOut
    user: UserOut | None = None


class MemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    section_id: str
    first_name: str
    last_name: str
    gender: str | None
    birth_date: date | None
    age_bracket: str | None
    phone: str | None
    voter_card_number: str | None
    polling_station: str | None
    created_at: datetime


class MemberCreate(BaseModel):
    # Required for every role except SECTION_USER, which always writes to its own Section.
    section_id: str | None = None
    first_name: NonBlank
    last_name: NonBlank
    gender: Gender | None = None
    birth_date: date | None = None
    age_bracket: Bracket | None = None
    phone: str | None = Field(default=None, max_length=30)
    voter_card_number: str | None = Field(default=None, max_length=40)
    polling_station: str | None = Field(default=None, max_length=120)


class MemberUpdate(BaseModel):
    first_name: NonBlank | None = None
    last_name: NonBlank | None = None
    gender: Gender | None = None
    birth_date: date | None = None
    age_bracket: Bracket | None = None
    phone: str | None = Field(default=None, max_length=30)
    voter_card_number: str | None = Field(default=None, max_length=40)
    polling_station: str | None = Field(default=None, max_length=120)
