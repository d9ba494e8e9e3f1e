# Wobulezi - iCalendar and CSV exports
import csv
import datetime as dt
import io
from typing import Iterable

from database.models import Event, Role

ICAL_TIME_FORMAT = "%Y%m%dT%H%M%SZ"
CSV_HEADER = ["Name", "Email", "Role", "Student ID", "Grade/Department", "Status", "Registered At"]


def _ical_time(value: dt.datetime) -> str:
    return value.strftime(ICAL_TIME_FORMAT)


def event_bounds(event: Event) -> tuple[dt.datetime, dt.datetime]:
    """Wall-clock HH:MM on the event date, read as UTC."""
    start = dt.datetime.combine(event.date, dt.time.fromisoformat(event.start_time))
    end = dt.datetime.combine(event.date, dt.time.fromisoformat(event.end_time))
    return start, end


def _escape_text(value: str | None) -> str:
    return (value or "").replace("\r\n", "\n").replace("\n", "\\n")


def render_icalendar(
    events: Iterable[Event],
    prodid: str,
    uid_domain: str,
    now: dt.datetime | None = None,
) -> str:
    stamp = _ical_time(now or dt.datetime.utcnow())
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{prodid}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
    ]
    for event in events:
        start, end = event_bounds(event)
        lines.extend([
            "BEGIN:VEVENT",
            f"UID:{event.id}@{uid_domain}",
            f"DTSTAMP:{stamp}",
            f"DTSTART:{_ical_time(start)}",
            f"DTEND:{_ical_time(end)}",
            f"SUMMARY:{event.title}",
            f"DESCRIPTION:{_escape_text(event.description)}",
            f"LOCATION:{event.location}",
            f"CATEGORIES:{event.category}",
            "END:VEVENT",
        ])
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines)


def report_row(registration, user) -> dict:
    return {
        "id": registration.id,
        "user_id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "student_id": user.student_number or "",
        "grade": user.grade or "",
        "department": user.department or "",
        "status": registration.status,
        "registered_at": registration.created_at,
    }


def render_attendance_csv(rows: Iterable[dict]) -> str:
    """Header row as-is, every data field double-quoted, rows joined by \\n."""
    buf = io.StringIO()
    buf.write(",".join(CSV_HEADER) + "\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        grade_or_department = row["grade"] if row["role"] == Role.STUDENT.value else row["department"]
        registered_at = row["registered_at"]
        if isinstance(registered_at, dt.datetime):
            registered_at = registered_at.strftime("%Y-%m-%d %H:%M:%S")
        writer.writerow([
            row["name"],
            row["email"],
            row["role"],
            row["student_id"],
            grade_or_department,
            row["status"],
            registered_at,
        ])
    return buf.getvalue().removesuffix("\n")
