"""
Bureau posts and their member assignments.

Every route works on one bureau scope: the caller's own scope, or the
`scope_type` / `scope_id` override for LOCALITE/OWNER. Assignments go through
the eligibility check (age group, then scope membership).
"""

from __future__ import annotations

from datetime import date
import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import and_, select
from sqlalchemy.orm import Session, selectinload

from orgscope.db.session import get_db
from orgscope.models.hierarchy import Member
from orgscope.models.resources import BureauAssignment, BureauPost
from orgscope.policy import (
    AgeGroup,
    BureauGroup,
    NotFound,
    ScopeDescriptor,
    TargetScope,
    creation_scope,
    ensure_can_mutate,
    ensure_can_view,
    ensure_eligible,
)
from orgscope.policy.eligibility import in_age_group, resolve_bracket
from orgscope.policy.queries import members_within
from orgscope.policy.store import HierarchyStore
from orgscope.schemas.bureau import (
    AssignmentOut,
    AssignmentResult,
    AssignmentUpsert,
    BureauPostCreate,
    BureauPostOut,
    EligibleMemberOut,
    PostWithAssignments,
)
from orgscope.security.context import AccessContext
from orgscope.security.dependencies import get_access, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bureau", tags=["bureau"])


def _bureau_scope(access: AccessContext, store: HierarchyStore) -> ScopeDescriptor:
    descriptor = creation_scope(access.scope, store)
    ensure_can_view(access.scope, TargetScope(descriptor.scope_type, descriptor.scope_id), store)
    return descriptor


def _posts_in(descriptor: ScopeDescriptor, age_group: AgeGroup | None):
    stmt = select(BureauPost).where(
        and_(BureauPost.scope_type == descriptor.scope_type.value, BureauPost.scope_id == descriptor.scope_id)
    )
    if age_group is not None:
        stmt = stmt.where(BureauPost.age_group == age_group.value)
    return stmt.order_by(BureauPost.name)


@router.get("/posts", response_model=list[BureauPostOut])
def list_posts(
    age_group: AgeGroup | None = None,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> list[BureauPost]:
    descriptor = _bureau_scope(access, store)
    return list(db.scalars(_posts_in(descriptor, age_group)).all())


@router.post("/posts", response_model=BureauPostOut, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: BureauPostCreate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> BureauPost:
    descriptor = creation_scope(access.scope, store)
    ensure_can_mutate(access.scope, TargetScope(descriptor.scope_type, descriptor.scope_id), store)

    post = BureauPost(
        name=payload.name,
        scope_type=descriptor.scope_type.value,
        scope_id=descriptor.scope_id,
        age_group=payload.age_group,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("Bureau post created id=%s scope=%s:%s by=%s", post.id, post.scope_type, post.scope_id, access.user_id)
    return post


@router.delete("/posts/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Response:
    post = db.get(BureauPost, id)
    if post is None:
        raise NotFound("Bureau post not found")
    ensure_can_mutate(access.scope, TargetScope.of(post), store)

    db.delete(post)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/eligible-members", response_model=list[EligibleMemberOut])
def eligible_members(
    age_group: AgeGroup,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> list[EligibleMemberOut]:
    descriptor = _bureau_scope(access, store)
    today = date.today()

    stmt = select(Member).where(members_within(descriptor)).order_by(Member.last_name, Member.first_name)
    eligible = []
    for member in db.scalars(stmt):
        if not in_age_group(member, age_group, today):
            continue
        eligible.append(
            EligibleMemberOut(
                id=member.id,
                section_id=member.section_id,
                first_name=member.first_name,
                last_name=member.last_name,
                gender=member.gender,
                birth_date=member.birth_date,
                age_bracket=resolve_bracket(member, today).value,
            )
        )
    return eligible


@router.get("/assignments", response_model=list[PostWithAssignments])
def list_assignments(
    age_group: AgeGroup | None = None,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> list[BureauPost]:
    descriptor = _bureau_scope(access, store)
    stmt = _posts_in(descriptor, age_group).options(selectinload(BureauPost.assignments))
    return list(db.scalars(stmt).all())


@router.post("/assignments", response_model=AssignmentResult)
def upsert_assignment(
    payload: AssignmentUpsert,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> AssignmentResult:
    """
    Put a member in a slot `(post, kind, slot_type, slot_index)`.

    An empty `member_id` clears the slot instead.
    """

    post = db.get(BureauPost, payload.post_id)
    if post is None:
        raise NotFound("Bureau post not found")
    ensure_can_mutate(access.scope, TargetScope.of(post), store)

    existing = db.execute(
        select(BureauAssignment).where(
            BureauAssignment.post_id == post.id,
            BureauAssignment.kind == payload.kind,
            BureauAssignment.slot_type == payload.slot_type,
            BureauAssignment.slot_index == payload.slot_index,
        )
    ).scalar_one_or_none()

    member_id = (payload.member_id or "").strip()
    if not member_id:
        if existing is not None:
            db.delete(existing)
            db.commit()
        return AssignmentResult(assignment=None, cleared=True)

    member = db.get(Member, member_id)
    if member is None:
        raise NotFound("Member not found")
    ensure_eligible(member, BureauGroup.of_post(post), store)

    if existing is None:
        existing = BureauAssignment(
            post_id=post.id,
            kind=payload.kind,
            slot_type=payload.slot_type,
            slot_index=payload.slot_index,
            member_id=member.id,
        )
        db.add(existing)
    else:
        existing.member_id = member.id
    db.commit()
    db.refresh(existing)
    logger.info(
        "Bureau assignment post=%s slot=%s/%s/%s member=%s by=%s",
        post.id,
        payload.kind,
        payload.slot_type,
        payload.slot_index,
        member.id,
        access.user_id,
    )
    return AssignmentResult(assignment=AssignmentOut.model_validate(existing))
