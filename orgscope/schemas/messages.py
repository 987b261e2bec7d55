from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from orgscope.schemas.hierarchy import NonBlank


class RecipientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None
    email: str
    role: str
    sous_localite_id: str | None
    section_id: str | None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    recipient_id: str
    subject: str
    body: str
    is_read: bool
    read_at: datetime | None
    created_at: datetime


class MessageSend(BaseModel):
    recipient_ids: list[str] = Field(min_length=1)
    subject: NonBlank = Field(max_length=200)
    body: NonBlank


class SendResult(BaseModel):
    count: int


class UnreadCount(BaseModel):
    count: int
