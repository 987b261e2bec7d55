from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from orgscope.schemas.hierarchy import NonBlank

_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class MeetingTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    is_reunion: bool
    scope_type: str | None
    scope_id: str | None
    created_at: datetime


class MeetingTypeCreate(BaseModel):
    name: NonBlank
    is_reunion: bool = False


class MeetingTypeUpdate(BaseModel):
    name: NonBlank | None = None
    is_reunion: bool | None = None


class _MeetingFields(BaseModel):
    start_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    end_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    place: str | None = Field(default=None, max_length=200)
    moderator: str | None = Field(default=None, max_length=120)
    monitor: str | None = Field(default=None, max_length=120)
    theme: str | None = None
    agenda: list[str] | None = None
    observations: str | None = None

    @model_validator(mode="after")
    def _check_times(self):
        # "HH:MM" strings compare chronologically.
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class MeetingCreate(_MeetingFields):
    type_id: str
    held_on: date
    presence_men: int = Field(default=0, ge=0)
    presence_women: int = Field(default=0, ge=0)
    # Defaults to presence_men + presence_women.
    presence_total: int | None = Field(default=None, ge=0)


class MeetingUpdate(_MeetingFields):
    type_id: str | None = None
    held_on: date | None = None
    presence_men: int | None = Field(default=None, ge=0)
    presence_women: int | None = Field(default=None, ge=0)
    presence_total: int | None = Field(default=None, ge=0)


class MeetingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type_id: str
    scope_type: str
    scope_id: str
    section_id: str | None
    held_on: date
    start_time: str | None
    end_time: str | None
    place: str | None
    moderator: str | None
    monitor: str | None
    theme: str | None
    agenda: list[str] | None
    observations: str | None
    presence_men: int
    presence_women: int
    presence_total: int
    created_by_id: str
    updated_by_id: str | None
    created_at: datetime
    updated_at: datetime


class MeetingPage(BaseModel):
    items: list[MeetingOut]
    total: int
    page: int
    limit: int
    total_pages: int
