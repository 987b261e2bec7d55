from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.hierarchy import Member, Section, SousLocalite
from orgscope.models.resources import BureauPost, Meeting, MeetingType
from orgscope.models.security import User
from orgscope.policy import (
    NotFound,
    Role,
    ScopeType,
    TargetScope,
    creation_scope,
    ensure_can_mutate,
    ensure_can_view,
)
from orgscope.policy.queries import sections_filter, sous_localites_filter
from orgscope.policy.store import HierarchyStore
from orgscope.schemas.hierarchy import (
    SectionCreate,
    SectionCreated,
    SectionOut,
    SectionUpdate,
    SousLocaliteCreate,
    SousLocaliteOut,
    SousLocaliteUpdate,
)
from orgscope.schemas.security import UserOut
from orgscope.security.context import AccessContext
from orgscope.security.dependencies import get_access, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["hierarchy"])


def _get_sous_localite(db: Session, id: str) -> SousLocalite:
    sous_localite = db.get(SousLocalite, id)
    if sous_localite is None:
        raise NotFound("SousLocalite not found")
    return sous_localite


def _get_section(db: Session, id: str) -> Section:
    section = db.get(Section, id)
    if section is None:
        raise NotFound("Section not found")
    return section


def _section_parent(access: AccessContext, sous_localite_id: str, localite_id: str) -> TargetScope:
    # Writing a Section means writing into its parent at the caller's own level.
    if access.scope.role is Role.SOUS_LOCALITE_ADMIN:
        return TargetScope.sous_localite(sous_localite_id)
    return TargetScope.localite(localite_id)


def _tagged_with(db: Session, scope_type: ScopeType, scope_id: str) -> bool:
    for model in (Meeting, MeetingType, BureauPost):
        stmt = select(model.id).where(model.scope_type == scope_type.value, model.scope_id == scope_id).limit(1)
        if db.execute(stmt).first() is not None:
            return True
    return False


def _ensure_unused(in_use: bool, what: str) -> None:
    if in_use:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{what} is still in use")


@router.get("/sous-localites", response_model=list[SousLocaliteOut])
def list_sous_localites(
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> list[SousLocalite]:
    stmt = select(SousLocalite).where(sous_localites_filter(access.scope)).order_by(SousLocalite.name)
    return list(db.scalars(stmt).all())


@router.post("/sous-localites", response_model=SousLocaliteOut, status_code=status.HTTP_201_CREATED)
def create_sous_localite(
    payload: SousLocaliteCreate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> SousLocalite:
    localite_id = payload.localite_id or access.scope.localite_id or creation_scope(access.scope, store).scope_id
    if not store.localite_exists(localite_id):
        raise NotFound("Localite not found")

    ensure_can_mutate(access.scope, TargetScope.localite(localite_id), store)

    sous_localite = SousLocalite(name=payload.name, localite_id=localite_id)
    db.add(sous_localite)
    db.commit()
    db.refresh(sous_localite)
    logger.info("SousLocalite created id=%s localite=%s by=%s", sous_localite.id, localite_id, access.user_id)
    return sous_localite


@router.put("/sous-localites/{id}", response_model=SousLocaliteOut)
def update_sous_localite(
    id: str,
    payload: SousLocaliteUpdate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> SousLocalite:
    sous_localite = _get_sous_localite(db, id)
    ensure_can_mutate(access.scope, TargetScope.localite(sous_localite.localite_id), store)

    sous_localite.name = payload.name
    db.commit()
    db.refresh(sous_localite)
    logger.info("SousLocalite renamed id=%s by=%s", id, access.user_id)
    return sous_localite


@router.delete("/sous-localites/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sous_localite(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Response:
    """Only an empty SousLocalité can go: no Sections, accounts or tagged records."""

    sous_localite = _get_sous_localite(db, id)
    ensure_can_mutate(access.scope, TargetScope.localite(sous_localite.localite_id), store)

    _ensure_unused(
        db.execute(select(Section.id).where(Section.sous_localite_id == id).limit(1)).first() is not None
        or db.execute(select(User.id).where(User.sous_localite_id == id).limit(1)).first() is not None
        or _tagged_with(db, ScopeType.SOUS_LOCALITE, id),
        "SousLocalite",
    )

    db.delete(sous_localite)
    db.commit()
    logger.info("SousLocalite deleted id=%s by=%s", id, access.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sections", response_model=list[SectionOut])
def list_sections(
    sous_localite_id: str | None = None,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> list[Section]:
    stmt = select(Section).where(sections_filter(access.scope))
    if sous_localite_id:
        stmt = stmt.where(Section.sous_localite_id == sous_localite_id)
    return list(db.scalars(stmt.order_by(Section.name)).all())


@router.get("/sections/{id}", response_model=SectionOut)
def get_section(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Section:
    section = _get_section(db, id)
    ensure_can_view(access.scope, TargetScope.section(section.id), store)
    return section


@router.post("/sections", response_model=SectionCreated, status_code=status.HTTP_201_CREATED)
def create_section(
    payload: SectionCreate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> SectionCreated:
    """
    Create a Section, optionally with its first SECTION_USER.

    Both rows are committed together or not at all.
    """

    localite_id = store.sous_localite_parent(payload.sous_localite_id)
    if localite_id is None:
        raise NotFound("SousLocalite not found")

    ensure_can_mutate(access.scope, _section_parent(access, payload.sous_localite_id, localite_id), store)

    if payload.user is not None:
        taken = db.execute(select(User.id).where(User.email == payload.user.email)).first()
        if taken is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")

    section = Section(name=payload.name, sous_localite_id=payload.sous_localite_id)
    db.add(section)
    section_user = None
    try:
        db.flush()
        if payload.user is not None:
            section_user = User(
                email=payload.user.email,
                name=payload.user.name,
                role=Role.SECTION_USER.value,
                section_id=section.id,
                is_active=True,
            )
            db.add(section_user)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Section creation rolled back sous_localite=%s: %s", payload.sous_localite_id, exc.orig)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Section could not be created") from exc

    db.refresh(section)
    logger.info("Section created id=%s sous_localite=%s by=%s", section.id, section.sous_localite_id, access.user_id)
    return SectionCreated(
        section=SectionOut.model_validate(section),
        user=UserOut.model_validate(section_user) if section_user is not None else None,
    )


@router.put("/sections/{id}", response_model=SectionOut)
def update_section(
    id: str,
    payload: SectionUpdate,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Section:
    section = _get_section(db, id)
    localite_id = store.sous_localite_parent(section.sous_localite_id)
    ensure_can_mutate(access.scope, _section_parent(access, section.sous_localite_id, localite_id), store)

    section.name = payload.name
    db.commit()
    db.refresh(section)
    logger.info("Section renamed id=%s by=%s", id, access.user_id)
    return section


@router.delete("/sections/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_section(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
    store: HierarchyStore = Depends(get_store),
) -> Response:
    """Only an empty Section can go: no members, meetings, accounts or tagged records."""

    section = _get_section(db, id)
    localite_id = store.sous_localite_parent(section.sous_localite_id)
    ensure_can_mutate(access.scope, _section_parent(access, section.sous_localite_id, localite_id), store)

    _ensure_unused(
        db.execute(select(Member.id).where(Member.section_id == id).limit(1)).first() is not None
        or db.execute(select(Meeting.id).where(Meeting.section_id == id).limit(1)).first() is not None
        or db.execute(select(User.id).where(User.section_id == id).limit(1)).first() is not None
        or _tagged_with(db, ScopeType.SECTION, id),
        "Section",
    )

    db.delete(section)
    db.commit()
    logger.info("Section deleted id=%s by=%s", id, access.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
