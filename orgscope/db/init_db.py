from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgscope.db.base import Base
from orgscope.db.session import SessionLocal, engine
from orgscope.models import resources as _resources  # noqa: F401  (register tables)
from orgscope.models.hierarchy import Localite, Member, Section, SousLocalite
from orgscope.models.resources import MeetingType
from orgscope.models.security import User
from orgscope.policy.scopes import Role


def init_db() -> None:
    """
    Create tables + seed demo data.

    Small and deterministic: one Localité, two SousLocalités, three Sections
    and one account per role, so every access rule can be tried right away.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Localite.id).limit(1)).first() is not None


def seed(db: Session) -> None:
    dakar = Localite(name="Dakar")
    db.add(dakar)
    db.flush()

    plateau = SousLocalite(name="Plateau", localite_id=dakar.id)
    medina = SousLocalite(name="Medina", localite_id=dakar.id)
    db.add_all([plateau, medina])
    db.flush()

    plateau_nord = Section(name="Plateau Nord", sous_localite_id=plateau.id)
    plateau_sud = Section(name="Plateau Sud", sous_localite_id=plateau.id)
    medina_centre = Section(name="Medina Centre", sous_localite_id=medina.id)
    db.add_all([plateau_nord, plateau_sud, medina_centre])
    db.flush()

    db.add_all(
        [
            User(email="owner@example.com", name="Olivia Owner", role=Role.OWNER.value),
            User(email="localite@example.com", name="Lamine Localite", role=Role.LOCALITE.value, localite_id=dakar.id),
            User(
                email="plateau.admin@example.com",
                name="Paul Plateau",
                role=Role.SOUS_LOCALITE_ADMIN.value,
                sous_localite_id=plateau.id,
            ),
            User(
                email="medina.admin@example.com",
                name="Mariama Medina",
                role=Role.SOUS_LOCALITE_ADMIN.value,
                sous_localite_id=medina.id,
            ),
            User(email="nord@example.com", name="Nafi Nord", role=Role.SECTION_USER.value, section_id=plateau_nord.id),
            User(email="sud@example.com", name="Saliou Sud", role=Role.SECTION_USER.value, section_id=plateau_sud.id),
            User(email="centre@example.com", name="Coumba Centre", role=Role.SECTION_USER.value, section_id=medina_centre.id),
            User(email="comite@example.com", name="Cheikh Comite", role=Role.COMITE_PEDAGOGIQUE.value, localite_id=dakar.id),
            # No localite_id: the home Localité comes from the SousLocalité.
            User(email="resp@example.com", name="Rama Resp", role=Role.ORG_UNIT_RESP.value, sous_localite_id=medina.id),
        ]
    )

    db.add_all(
        [
            MeetingType(name="Reunion mensuelle", is_reunion=True),
            MeetingType(name="Causerie", is_reunion=False),
        ]
    )

    db.add_all(
        [
            Member(section_id=plateau_nord.id, first_name="Awa", last_name="Diop", gender="FEMME", birth_date=date(1990, 4, 12)),
            Member(section_id=plateau_nord.id, first_name="Moussa", last_name="Fall", gender="HOMME", age_bracket="S2"),
            Member(section_id=plateau_sud.id, first_name="Fatou", last_name="Ndiaye", gender="FEMME", age_bracket="S1"),
            Member(section_id=plateau_sud.id, first_name="Ibrahima", last_name="Sarr", gender="HOMME", birth_date=date(1985, 11, 3)),
            Member(section_id=medina_centre.id, first_name="Aminata", last_name="Ba", gender="FEMME", birth_date=date(1978, 1, 30)),
            Member(section_id=medina_centre.id, first_name="Ousmane", last_name="Gueye", gender="HOMME", age_bracket="S2"),
        ]
    )

    db.commit()
