from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orgscope.db.base import Base, new_id, utcnow
from orgscope.models.hierarchy import Localite, Section, SousLocalite


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(120), nullable=False)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # One of orgscope.policy.scopes.Role.
    role: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    # At most one attachment is meaningful for a given role; the others can be
    # populated by legacy data and are ignored except by the Localité fallback chain.
    localite_id: Mapped[str | None] = mapped_column(ForeignKey("localites.id"), nullable=True, index=True)
    sous_localite_id: Mapped[str | None] = mapped_column(ForeignKey("sous_localites.id"), nullable=True, index=True)
    section_id: Mapped[str | None] = mapped_column(ForeignKey("sections.id"), nullable=True, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    localite: Mapped[Localite | None] = relationship()
    sous_localite: Mapped[SousLocalite | None] = relationship()
    section: Mapped[Section | None] = relationship()
