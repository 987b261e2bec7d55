from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.hierarchy import Member
from orgscope.models.resources import BureauAssignment
from orgscope.policy import NotFound, ScopeType, TargetScope, ensure_can_mutate, ensure_can_view
from orgscope.policy.store import HierarchyStore
from orgscope.schemas.hierarchy import MemberCreate, MemberOut, MemberUpdate
from orgscope.security.context import AccessContext
from orgscope.security.dependencies import get_access, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["members"])


def _get_member(db: Session, id: str) -> Member:
    member = db.get(Member, id)
    if member is None:
        raise NotFound("Member not found")
    return member


@router.get("", response_model=list[MemberOut])
def list_members(
    section_id: str | None = None,
    q: str | None = None,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> list[Member]:
    # Subtree narrowing is applied transparently (route is `scoped`).
    stmt = select(Member)
    if section_id:
        ensure_can_view(access.scope, TargetScope.section(section_id), store)
        stmt = stmt.where(Member.section_id == section_id)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(or_(Member.first_name.ilike(pattern), Member.last_name.ilike(pattern)))
    return list(db.scalars(stmt.order_by(Member.last_name, Member.first_name)).all())


@router.get("/{id}", response_model=MemberOut)
def get_member(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Member:
    member = _get_member(db, id)
    ensure_can_view(access.scope, TargetScope.of_member(member), store)
    return member


@router.post("", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
def create_member(
    payload: MemberCreate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Member:
    section_id = payload.section_id
    if section_id is None and access.scope.descriptor.scope_type is ScopeType.SECTION:
        section_id = access.scope.descriptor.scope_id
    if not section_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="section_id is required")
    if store.section_parent(section_id) is None:
        raise NotFound("Section not found")

    ensure_can_mutate(access.scope, TargetScope.section(section_id), store)

    member = Member(**payload.model_dump(exclude={"section_id"}), section_id=section_id)
    db.add(member)
    db.commit()
    db.refresh(member)
    logger.info("Member created id=%s section=%s by=%s", member.id, section_id, access.user_id)
    return member


@router.patch("/{id}", response_model=MemberOut)
def update_member(
    id: str,
    payload: MemberUpdate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Member:
    member = _get_member(db, id)
    ensure_can_mutate(access.scope, TargetScope.of_member(member), store)

    changes = payload.model_dump(exclude_unset=True)
    for required in ("first_name", "last_name"):
        if changes.get(required) is None:
            changes.pop(required, None)
    for field, value in changes.items():
        setattr(member, field, value)
    db.commit()
    db.refresh(member)
    return member


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_member(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Response:
    member = _get_member(db, id)
    ensure_can_mutate(access.scope, TargetScope.of_member(member), store)

    db.execute(delete(BureauAssignment).where(BureauAssignment.member_id == member.id))
    db.delete(member)
    db.commit()
    logger.info("Member deleted id=%s by=%s", id, access.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
