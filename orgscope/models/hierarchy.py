from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orgscope.db.base import Base, new_id, utcnow


class Localite(Base):
    __tablename__ = "localites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    sous_localites: Mapped[list["SousLocalite"]] = relationship(back_populates="localite")


class SousLocalite(Base):
    __tablename__ = "sous_localites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    # Set at creation, never re-parented.
    localite_id: Mapped[str] = mapped_column(ForeignKey("localites.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    localite: Mapped[Localite] = relationship(back_populates="sous_localites")
    sections: Mapped[list["Section"]] = relationship(back_populates="sous_localite")


class Section(Base):
    __tablename__ = "sections"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    # Set at creation, never re-parented.
    sous_localite_id: Mapped[str] = mapped_column(ForeignKey("sous_localites.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    sous_localite: Mapped[SousLocalite] = relationship(back_populates="sections")
    members: Mapped[list["Member"]] = relationship(back_populates="section")


class Member(Base):
    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    section_id: Mapped[str] = mapped_column(ForeignKey("sections.id"), nullable=False, index=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    gender: Mapped[str | None] = mapped_column(String(10), nullable=True)  # HOMME | FEMME

    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Explicit S1/S2/S3 tag; wins over the bracket computed from birth_date.
    age_bracket: Mapped[str | None] = mapped_column(String(2), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    voter_card_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    polling_station: Mapped[str | None] = mapped_column(String(120), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    section: Mapped[Section] = relationship(back_populates="members")
