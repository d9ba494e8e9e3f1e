# Wobulezi - Audit logging (every enforced policy decision)
import json
import logging
from collections import deque
from pathlib import Path

from .models import AuditLogEntry

_audit_logger = logging.getLogger("access.audit")
_audit_logger.setLevel(logging.INFO)
_audit_logger.propagate = False


class AuditMemoryHandler(logging.Handler):
    """Keeps the most recent entries for the admin sample endpoint."""

    def __init__(self, capacity: int = 500):
        super().__init__()
        self.entries: deque[dict] = deque(maxlen=capacity)

    def emit(self, record):
        entry = getattr(record, "audit_entry", None)
        if entry is not None:
            self.entries.append(entry)


class AuditFileHandler(logging.Handler):
    """Append-only JSONL file; entries carry ids and decisions, never resource payloads."""

    def __init__(self, filepath: Path):
        super().__init__()
        self.filepath = Path(filepath)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record):
        entry = getattr(record, "audit_entry", None)
        if entry is None:
            return
        try:
            with open(self.filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError:
            self.handleError(record)


_memory = AuditMemoryHandler()
_audit_logger.addHandler(_memory)


def configure_audit(log_file: Path | None = None, buffer_size: int = 500) -> None:
    """Reset the audit handlers; called once at startup."""
    global _memory
    for handler in list(_audit_logger.handlers):
        _audit_logger.removeHandler(handler)
        handler.close()
    _memory = AuditMemoryHandler(buffer_size)
    _audit_logger.addHandler(_memory)
    if log_file:
        _audit_logger.addHandler(AuditFileHandler(log_file))


def log_audit(entry: AuditLogEntry) -> None:
    safe = entry.model_dump(mode="json")
    _audit_logger.info(
        "%s %s %s -> %s",
        safe["role"],
        safe["operation"],
        safe["resource"],
        safe["policy_decision"],
        extra={"audit_entry": safe},
    )


def get_audit_sample(limit: int = 50) -> list[dict]:
    """Return the most recent audit entries, oldest first."""
    entries = list(_memory.entries)
    return entries[-limit:] if limit > 0 else []
