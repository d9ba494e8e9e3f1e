"""Partial updates over HTTP: allowed edits, null rejection, and who may edit what."""

import pytest


@pytest.mark.parametrize("field", ["title", "start_time", "end_time", "location", "is_public"])
async def test_event_update_rejects_null_for_required_fields(client, school, headers, field):
    fair = school.events["fair"]
    r = await client.put(f"/api/events/{fair.id}", json={field: None}, headers=headers("t1"))
    assert r.status_code == 400
    assert field in r.json()["fields"]
    still = await client.get(f"/api/events/{fair.id}", headers=headers("t1"))
    assert still.json()["title"] == "Science Fair"


async def test_organizer_updates_own_event(client, school, headers):
    fair = school.events["fair"]
    r = await client.put(
        f"/api/events/{fair.id}", json={"title": "Science Expo", "capacity": None}, headers=headers("t1")
    )
    assert r.status_code == 200
    event = r.json()["event"]
    assert event["title"] == "Science Expo"
    assert event["capacity"] is None


async def test_event_update_keeps_times_ordered(client, school, headers):
    fair = school.events["fair"]
    r = await client.put(f"/api/events/{fair.id}", json={"end_time": "08:30"}, headers=headers("t1"))
    assert r.status_code == 400
    assert "end_time" in r.json()["fields"]


async def test_other_teacher_cannot_update_event(client, school, headers):
    fair = school.events["fair"]
    r = await client.put(f"/api/events/{fair.id}", json={"title": "Mine now"}, headers=headers("t2"))
    assert r.status_code == 404


async def test_teacher_cannot_delete_own_event(client, school, headers):
    fair = school.events["fair"]
    r = await client.delete(f"/api/events/{fair.id}", headers=headers("t1"))
    assert r.status_code == 403
    assert (await client.get(f"/api/events/{fair.id}", headers=headers("t1"))).status_code == 200


@pytest.mark.parametrize("field", ["first_name", "date_of_birth", "parent_id", "class_id"])
async def test_student_update_rejects_null_for_required_fields(client, school, headers, field):
    eve = school.students["eve"]
    r = await client.put(f"/api/students/{eve.id}", json={field: None}, headers=headers("admin"))
    assert r.status_code == 400
    assert field in r.json()["fields"]


async def test_admin_updates_student_and_may_clear_address(client, school, headers):
    eve = school.students["eve"]
    r = await client.put(
        f"/api/students/{eve.id}", json={"section": "B", "address": None}, headers=headers("admin")
    )
    assert r.status_code == 200
    assert r.json()["section"] == "B"
    assert r.json()["address"] is None


async def test_student_update_with_unknown_parent_is_400(client, school, headers):
    eve = school.students["eve"]
    r = await client.put(f"/api/students/{eve.id}", json={"parent_id": 9999}, headers=headers("admin"))
    assert r.status_code == 400
    assert r.json()["fields"] == {"parent_id": "Parent not found"}


@pytest.mark.parametrize("field", ["name", "email", "password", "role"])
async def test_user_update_rejects_null_for_required_fields(client, school, headers, field):
    p1 = school.users["p1"]
    r = await client.put(f"/api/users/{p1.id}", json={field: None}, headers=headers("admin"))
    assert r.status_code == 400
    assert field in r.json()["fields"]


async def test_user_updates_own_profile_but_not_role(client, school, headers):
    p1 = school.users["p1"]
    r = await client.put(f"/api/users/{p1.id}", json={"name": "Carol P."}, headers=headers("p1"))
    assert r.status_code == 200
    assert r.json()["user"]["name"] == "Carol P."
    promote = await client.put(f"/api/users/{p1.id}", json={"role": "ADMIN"}, headers=headers("p1"))
    assert promote.status_code == 403


@pytest.mark.parametrize("field", ["name", "grade", "section", "teacher_id"])
async def test_class_update_rejects_null_for_required_fields(client, school, headers, field):
    cls = school.classes["7A"]
    r = await client.put(f"/api/classes/{cls.id}", json={field: None}, headers=headers("admin"))
    assert r.status_code == 400
    assert field in r.json()["fields"]


async def test_teacher_renames_own_class(client, school, headers):
    cls = school.classes["7A"]
    r = await client.put(f"/api/classes/{cls.id}", json={"name": "7A Science"}, headers=headers("t1"))
    assert r.status_code == 200
    assert r.json()["name"] == "7A Science"


async def test_teacher_cannot_update_another_teachers_class(client, school, headers):
    cls = school.classes["8B"]
    r = await client.put(f"/api/classes/{cls.id}", json={"name": "Taken"}, headers=headers("t1"))
    assert r.status_code == 404


async def test_only_admin_reassigns_a_class(client, school, headers):
    cls, other = school.classes["7A"], school.classes["8B"]
    r = await client.put(
        f"/api/classes/{cls.id}", json={"teacher_id": other.teacher_id}, headers=headers("t1")
    )
    assert r.status_code == 403
    ok = await client.put(
        f"/api/classes/{cls.id}", json={"teacher_id": other.teacher_id}, headers=headers("admin")
    )
    assert ok.status_code == 200
    assert ok.json()["teacher_id"] == other.teacher_id


async def test_mark_all_read_touches_only_the_callers_notifications(client, school, headers):
    for key in ("p1", "p1", "p2"):
        created = await client.post(
            "/api/notifications",
            json={"user_id": school.users[key].id, "message": "Term report ready"},
            headers=headers("admin"),
        )
        assert created.status_code == 201

    r = await client.post("/api/notifications/mark-all-read", headers=headers("p1"))
    assert r.json()["updated"] == 2

    mine = await client.get("/api/notifications", headers=headers("p1"))
    assert mine.json()["unread_count"] == 0
    theirs = await client.get("/api/notifications", headers=headers("p2"))
    assert theirs.json()["unread_count"] == 1
    assert [n["is_read"] for n in theirs.json()["notifications"]] == [False]
