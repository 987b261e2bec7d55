from __future__ import annotations

from datetime import date
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.resources import Meeting, MeetingType
from orgscope.policy import (
    NotFound,
    ScopeType,
    TargetScope,
    creation_scope,
    ensure_can_mutate,
    ensure_can_view,
    ensure_within_edit_window,
)
from orgscope.policy.queries import meetings_filter
from orgscope.policy.store import HierarchyStore
from orgscope.schemas.meetings import MeetingCreate, MeetingOut, MeetingPage, MeetingUpdate
from orgscope.security.context import AccessContext
from orgscope.security.dependencies import get_access, get_store
from orgscope.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meetings", tags=["meetings"])


def _get_meeting(db: Session, id: str) -> Meeting:
    meeting = db.get(Meeting, id)
    if meeting is None:
        raise NotFound("Meeting not found")
    return meeting


def _ensure_usable_type(db: Session, type_id: str, access: AccessContext, store: HierarchyStore) -> MeetingType:
    meeting_type = db.get(MeetingType, type_id)
    if meeting_type is None:
        raise NotFound("Meeting type not found")
    ensure_can_view(access.scope, TargetScope.of(meeting_type), store)
    return meeting_type


@router.get("", response_model=MeetingPage)
def list_meetings(
    type_id: str | None = None,
    section_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    q: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> MeetingPage:
    # The count is a column select, so the scope predicate is applied explicitly here.
    conditions = [meetings_filter(access.scope)]
    if type_id:
        conditions.append(Meeting.type_id == type_id)
    if section_id:
        ensure_can_view(access.scope, TargetScope.section(section_id), store)
        conditions.append(Meeting.scope_type == ScopeType.SECTION.value)
        conditions.append(Meeting.scope_id == section_id)
    if date_from:
        conditions.append(Meeting.held_on >= date_from)
    if date_to:
        conditions.append(Meeting.held_on <= date_to)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        conditions.append(
            or_(Meeting.theme.ilike(pattern), Meeting.moderator.ilike(pattern), Meeting.place.ilike(pattern))
        )

    total = db.scalar(select(func.count(Meeting.id)).where(*conditions)) or 0
    stmt = (
        select(Meeting)
        .where(*conditions)
        .order_by(Meeting.held_on.desc(), Meeting.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = list(db.scalars(stmt).all())

    return MeetingPage(
        items=[MeetingOut.model_validate(m) for m in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/{id}", response_model=MeetingOut)
def get_meeting(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Meeting:
    meeting = _get_meeting(db, id)
    ensure_can_view(access.scope, TargetScope.of(meeting), store)
    return meeting


@router.post("", response_model=MeetingOut, status_code=status.HTTP_201_CREATED)
def create_meeting(
    payload: MeetingCreate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Meeting:
    _ensure_usable_type(db, payload.type_id, access, store)

    # The scope is stamped from the caller and never changes afterwards.
    descriptor = creation_scope(access.scope, store)
    target = TargetScope(descriptor.scope_type, descriptor.scope_id)
    ensure_can_mutate(access.scope, target, store)

    data = payload.model_dump()
    if data["presence_total"] is None:
        data["presence_total"] = payload.presence_men + payload.presence_women

    meeting = Meeting(
        **data,
        scope_type=descriptor.scope_type.value,
        scope_id=descriptor.scope_id,
        section_id=descriptor.scope_id if descriptor.scope_type is ScopeType.SECTION else None,
        created_by_id=access.user_id,
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)
    logger.info("Meeting created id=%s scope=%s:%s by=%s", meeting.id, meeting.scope_type, meeting.scope_id, access.user_id)
    return meeting


@router.patch("/{id}", response_model=MeetingOut)
def update_meeting(
    id: str,
    payload: MeetingUpdate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Meeting:
    meeting = _get_meeting(db, id)
    ensure_can_mutate(access.scope, TargetScope.of(meeting), store)
    ensure_within_edit_window(access.scope, meeting.created_at, get_settings().meeting_edit_window)

    changes = payload.model_dump(exclude_unset=True)
    for required in ("type_id", "held_on", "presence_men", "presence_women", "presence_total"):
        if changes.get(required, 0) is None:
            changes.pop(required)
    if "type_id" in changes:
        _ensure_usable_type(db, changes["type_id"], access, store)

    start_time = changes.get("start_time", meeting.start_time)
    end_time = changes.get("end_time", meeting.end_time)
    if start_time and end_time and end_time <= start_time:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_time must be after start_time")

    for field, value in changes.items():
        setattr(meeting, field, value)
    if "presence_total" not in changes and ("presence_men" in changes or "presence_women" in changes):
        meeting.presence_total = meeting.presence_men + meeting.presence_women
    meeting.updated_by_id = access.user_id

    db.commit()
    db.refresh(meeting)
    return meeting


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_meeting(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Response:
    meeting = _get_meeting(db, id)
    ensure_can_mutate(access.scope, TargetScope.of(meeting), store)
    ensure_within_edit_window(access.scope, meeting.created_at, get_settings().meeting_edit_window)

    db.delete(meeting)
    db.commit()
    logger.info("Meeting deleted id=%s by=%s", id, access.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
