"""Monthly attendance and grade summaries."""

import datetime as dt

from server.summaries import attendance_summary, grade_summary, month_starts

TODAY = dt.date(2025, 2, 14)


def test_month_starts_cross_the_year_boundary():
    assert month_starts(TODAY, 3) == [dt.date(2025, 2, 1), dt.date(2025, 1, 1), dt.date(2024, 12, 1)]


def test_attendance_summary_counts_each_month():
    records = [
        (dt.date(2025, 2, 3), "Present"),
        (dt.date(2025, 2, 4), "Present"),
        (dt.date(2025, 2, 5), "Late"),
        (dt.date(2025, 1, 31), "Absent"),
        (dt.date(2024, 11, 30), "Present"),
    ]
    assert attendance_summary(records, TODAY, 3) == [
        {"month": "February 2025", "present": 2, "absent": 0, "late": 1, "rate": "67%"},
        {"month": "January 2025", "present": 0, "absent": 1, "late": 0, "rate": "0%"},
        {"month": "December 2024", "present": 0, "absent": 0, "late": 0, "rate": "N/A"},
    ]


def test_attendance_rate_rounds_half_up():
    records = [(dt.date(2025, 2, d), "Present") for d in (1, 2, 3)] + [
        (dt.date(2025, 2, d), "Absent") for d in (4, 5, 6, 7, 8)
    ]
    # 3 of 8 is 37.5%
    assert attendance_summary(records, TODAY, 1)[0]["rate"] == "38%"


def test_grade_summary():
    grades = [("Math", 91.0, "A"), ("Art", 78.0, "B-"), ("Music", 91.0, "A-"), ("Latin", 60.0, "E")]
    assert grade_summary(grades) == {
        "gpa": "2.60",
        "highest_grade": 91.0,
        "highest_subject": "Math",
        "average_score": 80.0,
    }


def test_grade_summary_average_rounds_half_up():
    # 70.25 rounds away from zero
    assert grade_summary([("Math", 70.0, "C"), ("Art", 70.5, "C")])["average_score"] == 70.3


def test_grade_summary_without_grades():
    assert grade_summary([]) == {"gpa": "N/A", "highest_grade": 0, "highest_subject": "", "average_score": 0}


async def test_grade_summary_endpoint_is_scoped(client, school, headers):
    eve = school.students["eve"]
    for subject, score, letter in (("Math", 95, "A"), ("Art", 85, "B")):
        r = await client.post(
            "/api/grades",
            json={"student_id": eve.id, "subject": subject, "term": "T1", "score": score, "grade": letter},
            headers=headers("t1"),
        )
        assert r.status_code == 201
    own = await client.get(f"/api/grades/summary?student_id={eve.id}", headers=headers("p1"))
    assert own.status_code == 200
    assert own.json() == {"gpa": "3.50", "highest_grade": 95.0, "highest_subject": "Math", "average_score": 90.0}
    other = await client.get(f"/api/grades/summary?student_id={eve.id}", headers=headers("p2"))
    assert other.status_code == 404


async def test_attendance_summary_endpoint(client, school, headers):
    eve = school.students["eve"]
    today = dt.datetime.utcnow().date()
    r = await client.post(
        "/api/attendance",
        json={"student_id": eve.id, "date": today.isoformat(), "status": "Present"},
        headers=headers("t1"),
    )
    assert r.status_code == 201
    summary = await client.get(f"/api/attendance/summary?student_id={eve.id}&months=2", headers=headers("s1"))
    assert summary.status_code == 200
    months = summary.json()
    assert len(months) == 2
    assert months[0]["present"] == 1
    assert months[0]["rate"] == "100%"
    assert months[1]["rate"] == "N/A"
    denied = await client.get(f"/api/attendance/summary?student_id={eve.id}", headers=headers("t2"))
    assert denied.status_code == 404
