from __future__ import annotations

from helpers import bearer


def _send(client, recipient_ids, sender="u-comite"):
    return client.post(
        "/messages",
        json={"recipient_ids": recipient_ids, "subject": "Reunion", "body": "Samedi 10h"},
        headers=bearer(sender),
    )


def test_recipients_are_admins_and_sections_of_home_localite(client):
    response = client.get("/messages/recipients", headers=bearer("u-comite"))

    assert response.status_code == 200
    assert {r["id"] for r in response.json()} == {"u-sl1", "u-sec1", "u-sec3"}


def test_only_comite_lists_recipients(client):
    assert client.get("/messages/recipients", headers=bearer("u-sec1")).status_code == 403


def test_send_drops_recipients_outside_home_localite(client):
    response = _send(client, ["u-sec1", "u-sec4", "u-nobody"])

    assert response.status_code == 201
    assert response.json() == {"count": 1}


def test_send_without_valid_recipient_is_400(client):
    assert _send(client, ["u-sec4"]).status_code == 400
    assert _send(client, []).status_code == 422


def test_only_comite_sends(client):
    assert _send(client, ["u-sec3"], sender="u-sec1").status_code == 403


def test_inbox_and_read_flow(client):
    _send(client, ["u-sec1", "u-sl1"])

    inbox = client.get("/messages", headers=bearer("u-sec1")).json()
    assert len(inbox) == 1
    assert inbox[0]["sender_id"] == "u-comite"
    assert client.get("/messages/unread-count", headers=bearer("u-sec1")).json() == {"count": 1}

    message_id = inbox[0]["id"]
    assert client.put(f"/messages/{message_id}/read", headers=bearer("u-sl1")).status_code == 404

    read = client.put(f"/messages/{message_id}/read", headers=bearer("u-sec1"))
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert read.json()["read_at"] is not None
    assert client.get("/messages/unread-count", headers=bearer("u-sec1")).json() == {"count": 0}


def test_sent_box_and_read_all(client):
    _send(client, ["u-sec1"])
    _send(client, ["u-sec1"])

    sent = client.get("/messages", params={"box": "sent"}, headers=bearer("u-comite")).json()
    assert len(sent) == 2

    assert client.put("/messages/read-all", headers=bearer("u-sec1")).json() == {"count": 0}
    assert client.get("/messages/unread-count", headers=bearer("u-sec1")).json() == {"count": 0}


def test_unknown_box_is_rejected(client):
    assert client.get("/messages", params={"box": "spam"}, headers=bearer("u-sec1")).status_code == 422
