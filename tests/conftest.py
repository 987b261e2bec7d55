"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. Policy tests run against
`FakeHierarchyStore`, an in-memory tree with the same ids as the `hierarchy`
fixture:

    loc-1 ── sl-1 ── sec-1, sec-2
         └── sl-2 ── sec-3
    loc-2 ── sl-3 ── sec-4
"""
from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from helpers import FakeHierarchyStore
from orgscope.policy.scopes import Role


TEST_DB_URL = "sqlite:///:memory:"
REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def store() -> FakeHierarchyStore:
    return FakeHierarchyStore(
        sous_localites={"sl-1": "loc-1", "sl-2": "loc-1", "sl-3": "loc-2"},
        sections={"sec-1": "sl-1", "sec-2": "sl-1", "sec-3": "sl-2", "sec-4": "sl-3"},
        localites=["loc-1", "loc-2"],
    )


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from orgscope.db.base import Base
    from orgscope.models import hierarchy, resources, security  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def hierarchy(db_session):
    """The FakeHierarchyStore tree, persisted, plus one account per role."""
    from orgscope.models.hierarchy import Localite, Section, SousLocalite
    from orgscope.models.security import User

    db_session.add_all([Localite(id="loc-1", name="Dakar"), Localite(id="loc-2", name="Thies")])
    db_session.flush()
    db_session.add_all(
        [
            SousLocalite(id="sl-1", name="Plateau", localite_id="loc-1"),
            SousLocalite(id="sl-2", name="Medina", localite_id="loc-1"),
            SousLocalite(id="sl-3", name="Mbour", localite_id="loc-2"),
        ]
    )
    db_session.flush()
    db_session.add_all(
        [
            Section(id="sec-1", name="Plateau Nord", sous_localite_id="sl-1"),
            Section(id="sec-2", name="Plateau Sud", sous_localite_id="sl-1"),
            Section(id="sec-3", name="Medina Centre", sous_localite_id="sl-2"),
            Section(id="sec-4", name="Mbour Plage", sous_localite_id="sl-3"),
        ]
    )
    db_session.flush()

    users = SimpleNamespace(
        owner=User(id="u-owner", email="owner@example.com", role=Role.OWNER.value),
        localite=User(id="u-localite", email="localite@example.com", role=Role.LOCALITE.value, localite_id="loc-1"),
        sl_admin=User(id="u-sl1", email="sl1@example.com", role=Role.SOUS_LOCALITE_ADMIN.value, sous_localite_id="sl-1"),
        section=User(id="u-sec1", email="sec1@example.com", role=Role.SECTION_USER.value, section_id="sec-1"),
        other_section=User(id="u-sec3", email="sec3@example.com", role=Role.SECTION_USER.value, section_id="sec-3"),
        far_section=User(id="u-sec4", email="sec4@example.com", role=Role.SECTION_USER.value, section_id="sec-4"),
        comite=User(id="u-comite", email="comite@example.com", role=Role.COMITE_PEDAGOGIQUE.value, localite_id="loc-1"),
        orphan=User(id="u-orphan", email="orphan@example.com", role=Role.SECTION_USER.value),
    )
    db_session.add_all(vars(users).values())
    db_session.commit()
    return users


@pytest.fixture
def client(db_session, hierarchy):
    """
    TestClient wired to the test session.

    The lifespan is not run: the access config is loaded here and `get_db`
    is overridden to hand out `db_session`.
    """
    from orgscope.db.session import get_db
    from orgscope.main import app
    from orgscope.security.config import load_access_config

    def override_get_db(request: Request):
        access = getattr(request.state, "access", None)
        if access is None:
            db_session.info.pop("access", None)
        else:
            db_session.info["access"] = access
        try:
            yield db_session
        finally:
            # Assertions made directly on db_session stay unscoped.
            db_session.info.pop("access", None)

    app.dependency_overrides[get_db] = override_get_db
    app.state.access_config = load_access_config(REPO_ROOT / "config" / "access_policy.yaml")
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        db_session.info.pop("access", None)
