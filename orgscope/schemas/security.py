from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None
    role: str
    localite_id: str | None
    sous_localite_id: str | None
    section_id: str | None
    is_active: bool
    created_at: datetime


class ScopeOut(BaseModel):
    scope_type: str
    scope_id: str
    localite_id: str | None
    overridden: bool


class MeOut(BaseModel):
    user: UserOut
    scope: ScopeOut
