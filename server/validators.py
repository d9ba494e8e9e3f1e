# Wobulezi - shared request-body validators
HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


def reject_null(value):
    """Partial updates may omit a field, but may not null out a required one."""
    if value is None:
        raise ValueError("Field may not be null")
    return value


def times_ordered(start: str, end: str) -> bool:
    return end > start
