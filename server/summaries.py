# Wobulezi - per-student attendance and grade summaries
import calendar
import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from database.models import AttendanceStatus

GRADE_POINTS = {
    "A": 4.0,
    "A-": 3.7,
    "B+": 3.3,
    "B": 3.0,
    "B-": 2.7,
    "C+": 2.3,
    "C": 2.0,
    "C-": 1.7,
    "D+": 1.3,
    "D": 1.0,
    "F": 0.0,
}


def _half_up(value: Decimal, places: str) -> Decimal:
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def month_starts(today: dt.date, months: int) -> list[dt.date]:
    """First day of the current month and the ``months - 1`` before it, newest first."""
    starts = []
    year, month = today.year, today.month
    for _ in range(months):
        starts.append(dt.date(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return starts


def month_end(start: dt.date) -> dt.date:
    return start.replace(day=calendar.monthrange(start.year, start.month)[1])


def attendance_summary(records: Iterable[tuple[dt.date, str]], today: dt.date, months: int = 3) -> list[dict]:
    records = list(records)
    out = []
    for start in month_starts(today, months):
        end = month_end(start)
        statuses = [status for day, status in records if start <= day <= end]
        present = statuses.count(AttendanceStatus.PRESENT.value)
        total = len(statuses)
        rate = "N/A"
        if total:
            rate = f"{_half_up(Decimal(present * 100) / Decimal(total), '1')}%"
        out.append({
            "month": f"{calendar.month_name[start.month]} {start.year}",
            "present": present,
            "absent": statuses.count(AttendanceStatus.ABSENT.value),
            "late": statuses.count(AttendanceStatus.LATE.value),
            "rate": rate,
        })
    return out


def grade_summary(grades: list[tuple[str, float, str]]) -> dict:
    """``grades`` holds (subject, score, letter) in recording order."""
    if not grades:
        return {"gpa": "N/A", "highest_grade": 0, "highest_subject": "", "average_score": 0}
    # unknown letters count as zero points
    points = sum(Decimal(str(GRADE_POINTS.get(letter, 0.0))) for _, _, letter in grades)
    highest = max(score for _, score, _ in grades)
    subject = next(subject for subject, score, _ in grades if score == highest)
    total = sum(Decimal(str(score)) for _, score, _ in grades)
    return {
        "gpa": str(_half_up(points / len(grades), "0.01")),
        "highest_grade": highest,
        "highest_subject": subject,
        "average_score": float(_half_up(total / len(grades), "0.1")),
    }
