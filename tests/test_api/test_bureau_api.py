from __future__ import annotations

from datetime import date

import pytest

from helpers import bearer
from orgscope.models.hierarchy import Member
from orgscope.models.resources import BureauAssignment, BureauPost


@pytest.fixture
def bureau(db_session, hierarchy):
    db_session.add_all(
        [
            Member(id="m-adult", section_id="sec-1", first_name="Awa", last_name="Diop", birth_date=date(1990, 4, 12)),
            Member(id="m-child", section_id="sec-1", first_name="Issa", last_name="Ba", age_bracket="S1"),
            Member(id="m-unknown", section_id="sec-1", first_name="Nd", last_name="Sy"),
            Member(id="m-neighbour", section_id="sec-2", first_name="Moussa", last_name="Fall", age_bracket="S3"),
            Member(id="m-far", section_id="sec-3", first_name="Fatou", last_name="Ndiaye", age_bracket="S3"),
        ]
    )
    db_session.add_all(
        [
            BureauPost(id="p-sec1", name="Secretaire", scope_type="SECTION", scope_id="sec-1", age_group="S3"),
            BureauPost(id="p-sec1-young", name="Tresorier", scope_type="SECTION", scope_id="sec-1", age_group="S1S2"),
            BureauPost(id="p-sec3", name="President", scope_type="SECTION", scope_id="sec-3", age_group="S3"),
        ]
    )
    db_session.commit()


def _assign(client, user_id, post_id, member_id, **slot):
    payload = {"post_id": post_id, "kind": "TITULAIRE", "member_id": member_id, **slot}
    return client.post("/bureau/assignments", json=payload, headers=bearer(user_id))


def test_posts_are_listed_for_the_callers_scope(client, bureau):
    response = client.get("/bureau/posts", headers=bearer("u-sec1"))

    assert {p["id"] for p in response.json()} == {"p-sec1", "p-sec1-young"}


def test_posts_filtered_by_age_group(client, bureau):
    response = client.get("/bureau/posts", params={"age_group": "S1S2"}, headers=bearer("u-sec1"))

    assert [p["id"] for p in response.json()] == ["p-sec1-young"]


def test_section_user_creates_post_in_own_section(client, bureau):
    response = client.post("/bureau/posts", json={"name": "Organisateur", "age_group": "S3"}, headers=bearer("u-sec1"))

    assert response.status_code == 201
    assert (response.json()["scope_type"], response.json()["scope_id"]) == ("SECTION", "sec-1")


def test_owner_creates_post_in_overridden_scope(client, bureau):
    response = client.post(
        "/bureau/posts",
        params={"scope_type": "SOUS_LOCALITE", "scope_id": "sl-1"},
        json={"name": "Coordinateur", "age_group": "S3"},
        headers=bearer("u-owner"),
    )

    assert response.status_code == 201
    assert (response.json()["scope_type"], response.json()["scope_id"]) == ("SOUS_LOCALITE", "sl-1")


def test_eligible_members(client, bureau):
    adults = client.get("/bureau/eligible-members", params={"age_group": "S3"}, headers=bearer("u-sec1")).json()
    young = client.get("/bureau/eligible-members", params={"age_group": "S1S2"}, headers=bearer("u-sec1")).json()

    assert [(m["id"], m["age_bracket"]) for m in adults] == [("m-adult", "S3")]
    assert [(m["id"], m["age_bracket"]) for m in young] == [("m-child", "S1")]


def test_assign_eligible_member(client, bureau, db_session):
    response = _assign(client, "u-sec1", "p-sec1", "m-adult", slot_type="PRIMARY")

    assert response.status_code == 200
    body = response.json()
    assert body["cleared"] is False
    assert body["assignment"]["member_id"] == "m-adult"
    assert body["assignment"]["slot_type"] == "PRIMARY"


def test_reassigning_a_slot_replaces_the_member(client, bureau, db_session):
    db_session.add(BureauAssignment(id="a-1", post_id="p-sec1-young", member_id="m-child", kind="ADJOINT"))
    db_session.add(Member(id="m-teen", section_id="sec-1", first_name="Bineta", last_name="Kane", age_bracket="S2"))
    db_session.commit()

    response = _assign(client, "u-sec1", "p-sec1-young", "m-teen", kind="ADJOINT")

    assert response.status_code == 200
    assert response.json()["assignment"]["id"] == "a-1"
    assert response.json()["assignment"]["member_id"] == "m-teen"


def test_wrong_age_group_is_ineligible(client, bureau):
    response = _assign(client, "u-sec1", "p-sec1", "m-child")

    assert response.status_code == 400
    assert response.json()["code"] == "INELIGIBLE_MEMBER"


def test_member_without_bracket_is_ineligible(client, bureau):
    response = _assign(client, "u-sec1", "p-sec1", "m-unknown")

    assert response.status_code == 400
    assert response.json()["code"] == "INELIGIBLE_MEMBER"


def test_member_of_another_section_is_out_of_scope(client, bureau):
    response = _assign(client, "u-sec1", "p-sec1", "m-neighbour")

    assert response.status_code == 400
    assert response.json()["code"] == "OUT_OF_SCOPE"


def test_post_of_another_section_is_forbidden(client, bureau):
    assert _assign(client, "u-sec1", "p-sec3", "m-far").status_code == 403


def test_unknown_member_or_post_is_404(client, bureau):
    assert _assign(client, "u-sec1", "p-sec1", "m-gone").status_code == 404
    assert _assign(client, "u-sec1", "p-gone", "m-adult").status_code == 404


def test_empty_member_clears_the_slot(client, bureau, db_session):
    db_session.add(BureauAssignment(id="a-1", post_id="p-sec1", member_id="m-adult", kind="TITULAIRE"))
    db_session.commit()

    response = _assign(client, "u-sec1", "p-sec1", "")

    assert response.status_code == 200
    assert response.json() == {"assignment": None, "cleared": True}
    assert db_session.get(BureauAssignment, "a-1") is None


def test_assignments_are_listed_per_post(client, bureau, db_session):
    db_session.add(BureauAssignment(id="a-1", post_id="p-sec1", member_id="m-adult", kind="TITULAIRE"))
    db_session.commit()

    response = client.get("/bureau/assignments", headers=bearer("u-sec1"))

    posts = {p["id"]: p for p in response.json()}
    assert [a["member_id"] for a in posts["p-sec1"]["assignments"]] == ["m-adult"]
    assert posts["p-sec1-young"]["assignments"] == []


def test_delete_post(client, bureau, db_session):
    assert client.delete("/bureau/posts/p-sec3", headers=bearer("u-sec1")).status_code == 403
    assert client.delete("/bureau/posts/p-sec1", headers=bearer("u-sec1")).status_code == 204
    assert db_session.get(BureauPost, "p-sec1") is None


def test_comite_has_no_bureau_scope(client, bureau):
    assert client.get("/bureau/posts", headers=bearer("u-comite")).status_code == 403
