from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orgscope.db.base import Base, new_id, utcnow
from orgscope.models.hierarchy import Member, Section
from orgscope.models.security import User


class MeetingType(Base):
    __tablename__ = "meeting_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    is_reunion: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Both null: global type, visible at every level.
    scope_type: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    scope_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    created_by_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Meeting(Base):
    __tablename__ = "meetings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    type_id: Mapped[str] = mapped_column(ForeignKey("meeting_types.id"), nullable=False, index=True)

    # Copied from the creator's scope at creation and never changed.
    scope_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    scope_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    section_id: Mapped[str | None] = mapped_column(ForeignKey("sections.id"), nullable=True, index=True)

    held_on: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    place: Mapped[str | None] = mapped_column(String(200), nullable=True)
    moderator: Mapped[str | None] = mapped_column(String(120), nullable=True)
    monitor: Mapped[str | None] = mapped_column(String(120), nullable=True)
    theme: Mapped[str | None] = mapped_column(Text, nullable=True)
    agenda: Mapped[list | None] = mapped_column(JSON, nullable=True)
    observations: Mapped[str | None] = mapped_column(Text, nullable=True)

    presence_men: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    presence_women: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    presence_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_by_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    updated_by_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    type: Mapped[MeetingType] = relationship()
    section: Mapped[Section | None] = relationship()


class BureauPost(Base):
    __tablename__ = "bureau_posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    scope_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    scope_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    age_group: Mapped[str] = mapped_column(String(4), nullable=False)  # S1S2 | S3

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    assignments: Mapped[list["BureauAssignment"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by=lambda: [BureauAssignment.slot_type, BureauAssignment.slot_index],
    )


class BureauAssignment(Base):
    __tablename__ = "bureau_assignments"
    __table_args__ = (UniqueConstraint("post_id", "kind", "slot_type", "slot_index"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(ForeignKey("bureau_posts.id"), nullable=False, index=True)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)

    kind: Mapped[str] = mapped_column(String(10), nullable=False)  # TITULAIRE | ADJOINT
    slot_type: Mapped[str] = mapped_column(String(10), nullable=False, default="EXTRA")  # PRIMARY | EXTRA
    slot_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    post: Mapped[BureauPost] = relationship(back_populates="assignments")
    member: Mapped[Member] = relationship()


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    sender_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    recipient_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    sender: Mapped[User] = relationship(foreign_keys=[sender_id])
    recipient: Mapped[User] = relationship(foreign_keys=[recipient_id])
