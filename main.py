# Wobulezi - School records and events API
# Every route authenticates, then asks the access policy before touching data.
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query

from config import get_settings
from database.database import dispose_db, init_db
from database.models import Role
from auth import require_auth
from access import Principal
from access.audit import configure_audit, get_audit_sample
from server.errors import Forbidden, register_error_handlers
from server.attendance import router as attendance_router
from server.auth_routes import router as auth_router
from server.calendar import router as calendar_router
from server.classes import router as classes_router
from server.event_details import router as event_details_router
from server.events import router as events_router
from server.grades import router as grades_router
from server.messages import router as messages_router
from server.notifications import router as notifications_router
from server.registration_routes import router as registrations_router
from server.reports import router as reports_router
from server.stats import router as stats_router
from server.students import router as students_router
from server.users import router as users_router

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    configure_audit(settings.audit_log_file, settings.audit_buffer_size)
    await init_db(settings.database_url)
    logger.info("Wobulezi started")
    yield
    await dispose_db()


app = FastAPI(
    title="Wobulezi School Events",
    description="School records, events and registrations behind a single access policy",
    lifespan=lifespan,
)

register_error_handlers(app)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(students_router)
app.include_router(classes_router)
app.include_router(attendance_router)
app.include_router(grades_router)
app.include_router(events_router)
app.include_router(event_details_router)
app.include_router(registrations_router)
app.include_router(messages_router)
app.include_router(notifications_router)
app.include_router(calendar_router)
app.include_router(reports_router)
app.include_router(stats_router)


@app.get("/")
async def index():
    return {"message": "Wobulezi API - see /docs"}


@app.get("/api/audit/sample")
async def audit_sample(
    limit: int = Query(20, ge=1, le=500),
    principal: Principal = Depends(require_auth),
):
    """Recent policy decisions (ids and outcomes only, no record contents)."""
    if principal.role is not Role.ADMIN:
        raise Forbidden("Only administrators can read the audit log")
    return {"entries": get_audit_sample(limit)}


if __name__ == "__main__":
    import os
    import uvicorn
    host = os.environ.get("UVICORN_HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run("main:app", host=host, port=port, reload=False)
