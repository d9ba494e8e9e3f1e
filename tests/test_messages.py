"""Broadcasts and the contacts list."""

import pytest
from sqlalchemy import update

from database.models import User


async def test_admin_broadcasts_to_a_role(client, school, headers):
    r = await client.post(
        "/api/messages/broadcast", json={"content": "Staff meeting at 3", "target_role": "TEACHER"},
        headers=headers("admin"),
    )
    assert r.status_code == 201
    assert r.json() == {"success": True, "messages_sent": 2, "total_targets": 2, "target_role": "TEACHER"}
    inbox = await client.get("/api/messages", headers=headers("t2"))
    assert [m["content"] for m in inbox.json()] == ["Staff meeting at 3"]
    assert (await client.get("/api/messages", headers=headers("p1"))).json() == []


async def test_broadcast_is_admin_only(client, school, headers):
    r = await client.post(
        "/api/messages/broadcast", json={"content": "Hi all", "target_role": "PARENT"}, headers=headers("t1")
    )
    assert r.status_code == 403


@pytest.mark.parametrize("payload", [
    {"content": "Hi", "target_role": "ADMIN"},
    {"content": "Hi", "target_role": "JANITOR"},
    {"target_role": "PARENT"},
])
async def test_broadcast_rejects_bad_payloads(client, school, headers, payload):
    r = await client.post("/api/messages/broadcast", json=payload, headers=headers("admin"))
    assert r.status_code == 400


async def test_broadcast_with_no_targets_is_404(client, school, headers, session):
    await session.execute(update(User).where(User.role == "STUDENT").values(role="PARENT"))
    await session.commit()
    r = await client.post(
        "/api/messages/broadcast", json={"content": "Hi", "target_role": "STUDENT"}, headers=headers("admin")
    )
    assert r.status_code == 404
    assert r.json()["error"] == "No students found"


async def test_contacts_list_latest_first_with_unread_counts(client, school, headers):
    t1, t2 = school.users["t1"], school.users["t2"]
    await client.post("/api/messages", json={"receiver_id": t1.id, "content": "First"}, headers=headers("p1"))
    await client.post("/api/messages", json={"receiver_id": t1.id, "content": "Second"}, headers=headers("p1"))
    await client.post("/api/messages", json={"receiver_id": t2.id, "content": "Hello Bob"}, headers=headers("p1"))

    as_t1 = await client.get("/api/messages/contacts", headers=headers("t1"))
    assert as_t1.status_code == 200
    assert as_t1.json() == [{
        "id": school.users["p1"].id,
        "name": "Carol Parent",
        "role": "PARENT",
        "last_message": "Second",
        "last_message_time": as_t1.json()[0]["last_message_time"],
        "unread_count": 2,
    }]

    as_p1 = await client.get("/api/messages/contacts", headers=headers("p1"))
    assert [(c["id"], c["unread_count"]) for c in as_p1.json()] == [(t2.id, 0), (t1.id, 0)]
    assert (await client.get("/api/messages/contacts", headers=headers("s2"))).json() == []


async def test_contact_lookup(client, school, headers):
    t1 = school.users["t1"]
    r = await client.post("/api/messages/contacts", json={"user_id": t1.id}, headers=headers("p1"))
    assert r.json() == {"id": t1.id, "name": "Alice Teacher", "role": "TEACHER"}
    missing = await client.post("/api/messages/contacts", json={"user_id": 9999}, headers=headers("p1"))
    assert missing.status_code == 404
