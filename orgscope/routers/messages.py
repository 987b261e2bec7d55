from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from orgscope.db.base import utcnow
from orgscope.db.session import get_db
from orgscope.models.resources import Message
from orgscope.models.security import User
from orgscope.policy import NotFound, Role, ScopeDescriptor, ScopeMissing, ScopeType
from orgscope.policy.queries import users_within
from orgscope.schemas.messages import MessageOut, MessageSend, RecipientOut, SendResult, UnreadCount
from orgscope.security.context import AccessContext
from orgscope.security.dependencies import get_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])

_RECIPIENT_ROLES = (Role.SOUS_LOCALITE_ADMIN.value, Role.SECTION_USER.value)


def _recipients_stmt(access: AccessContext):
    """SOUS_LOCALITE_ADMIN and SECTION_USER accounts of the sender's home Localité."""

    if access.scope.localite_id is None:
        raise ScopeMissing("sender has no home localite")
    home = ScopeDescriptor(ScopeType.LOCALITE, access.scope.localite_id)
    return select(User).where(
        User.id != access.user_id,
        User.is_active.is_(True),
        User.role.in_(_RECIPIENT_ROLES),
        users_within(home),
    )


@router.get("/recipients", response_model=list[RecipientOut])
def list_recipients(
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> list[User]:
    stmt = _recipients_stmt(access).order_by(User.role, User.name)
    return list(db.scalars(stmt).all())


@router.post("", response_model=SendResult, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: MessageSend,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> SendResult:
    """One message row per valid recipient; unknown or out-of-Localité ids are dropped."""

    stmt = _recipients_stmt(access).where(User.id.in_(set(payload.recipient_ids)))
    recipients = list(db.scalars(stmt).all())
    if not recipients:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid recipient")

    db.add_all(
        Message(sender_id=access.user_id, recipient_id=r.id, subject=payload.subject, body=payload.body)
        for r in recipients
    )
    db.commit()
    logger.info("Messages sent by=%s count=%s", access.user_id, len(recipients))
    return SendResult(count=len(recipients))


@router.get("", response_model=list[MessageOut])
def list_messages(
    box: str = Query(default="inbox", pattern="^(inbox|sent)$"),
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> list[Message]:
    column = Message.sender_id if box == "sent" else Message.recipient_id
    stmt = select(Message).where(column == access.user_id).order_by(Message.created_at.desc()).limit(200)
    return list(db.scalars(stmt).all())


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> UnreadCount:
    count = db.scalar(
        select(func.count(Message.id)).where(Message.recipient_id == access.user_id, Message.is_read.is_(False))
    )
    return UnreadCount(count=count or 0)


@router.put("/read-all", response_model=UnreadCount)
def mark_all_read(
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> UnreadCount:
    db.execute(
        update(Message)
        .where(Message.recipient_id == access.user_id, Message.is_read.is_(False))
        .values(is_read=True, read_at=utcnow())
    )
    db.commit()
    return UnreadCount(count=0)


@router.put("/{id}/read", response_model=MessageOut)
def mark_read(
    id: str,
    db: Session = Depends(get_db),
    access: AccessContext = Depends(get_access),
) -> Message:
    message = db.get(Message, id)
    # Someone else's message is reported as missing.
    if message is None or message.recipient_id != access.user_id:
        raise NotFound("Message not found")

    if not message.is_read:
        message.is_read = True
        message.read_at = utcnow()
        db.commit()
        db.refresh(message)
    return message
