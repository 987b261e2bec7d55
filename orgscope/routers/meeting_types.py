from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.resources import Meeting, MeetingType
from orgscope.policy import NotFound, TargetScope, creation_scope, ensure_can_mutate, ensure_can_view
from orgscope.policy.store import HierarchyStore
from orgscope.schemas.meetings import MeetingTypeCreate, MeetingTypeOut, MeetingTypeUpdate
from orgscope.security.context import AccessContext
from orgscope.security.dependencies import get_access, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meeting-types", tags=["meeting_types"])


def _get_type(db: Session, id: str) -> MeetingType:
    meeting_type = db.get(MeetingType, id)
    if meeting_type is None:
        raise NotFound("Meeting type not found")
    return meeting_type


def _ensure_unique_name(db: Session, name: str, target: TargetScope, exclude_id: str | None = None) -> None:
    stmt = select(MeetingType.id).where(func.lower(MeetingType.name) == name.lower())
    if target.is_global:
        stmt = stmt.where(MeetingType.scope_type.is_(None))
    else:
        stmt = stmt.where(MeetingType.scope_type == target.scope_type.value, MeetingType.scope_id == target.scope_id)
    if exclude_id is not None:
        stmt = stmt.where(MeetingType.id != exclude_id)

    if db.execute(stmt).first() is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A meeting type with this name already exists")


@router.get("", response_model=list[MeetingTypeOut])
def list_meeting_types(db: Session = Depends(get_db)) -> list[MeetingType]:
    # Global types plus the caller's subtree (route is `scoped`).
    return list(db.scalars(select(MeetingType).order_by(MeetingType.name)).all())


@router.get("/{id}", response_model=MeetingTypeOut)
def get_meeting_type(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> MeetingType:
    meeting_type = _get_type(db, id)
    ensure_can_view(access.scope, TargetScope.of(meeting_type), store)
    return meeting_type


@router.post("", response_model=MeetingTypeOut, status_code=status.HTTP_201_CREATED)
def create_meeting_type(
    payload: MeetingTypeCreate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> MeetingType:
    """
    LOCALITE/OWNER create global types; everyone else tags the type with
    their own scope (or the override, when one was requested).
    """

    if access.scope.is_tenant_wide:
        target = TargetScope.global_()
    else:
        descriptor = creation_scope(access.scope, store)
        target = TargetScope(descriptor.scope_type, descriptor.scope_id)
    ensure_can_mutate(access.scope, target, store)
    _ensure_unique_name(db, payload.name, target)

    meeting_type = MeetingType(
        name=payload.name,
        is_reunion=payload.is_reunion,
        scope_type=target.scope_type.value if target.scope_type else None,
        scope_id=target.scope_id,
        created_by_id=access.user_id,
    )
    db.add(meeting_type)
    db.commit()
    db.refresh(meeting_type)
    logger.info("Meeting type created id=%s scope=%s:%s by=%s", meeting_type.id, meeting_type.scope_type, meeting_type.scope_id, access.user_id)
    return meeting_type


@router.patch("/{id}", response_model=MeetingTypeOut)
def update_meeting_type(
    id: str,
    payload: MeetingTypeUpdate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> MeetingType:
    meeting_type = _get_type(db, id)
    target = TargetScope.of(meeting_type)
    ensure_can_mutate(access.scope, target, store)

    if payload.name is not None:
        _ensure_unique_name(db, payload.name, target, exclude_id=meeting_type.id)
        meeting_type.name = payload.name
    if payload.is_reunion is not None:
        meeting_type.is_reunion = payload.is_reunion
    db.commit()
    db.refresh(meeting_type)
    return meeting_type


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_meeting_type(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Response:
    meeting_type = _get_type(db, id)
    ensure_can_mutate(access.scope, TargetScope.of(meeting_type), store)

    in_use = db.scalar(select(func.count(Meeting.id)).where(Meeting.type_id == meeting_type.id)) or 0
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Meeting type is used by {in_use} meeting(s) and cannot be deleted",
        )

    db.delete(meeting_type)
    db.commit()
    logger.info("Meeting type deleted id=%s by=%s", id, access.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
