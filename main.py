import logging
from enum import Enum
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
import items
import registrations
from database import ensure_indexes, get_db, serialize, utcnow
from export import export_filename, export_records
from items import NotFoundError
from registrations import SubmissionError
from schemas import (
    AttendanceUpdate,
    AttendeeAdjustment,
    ItemStatusUpdate,
    RegistrationForm,
    ScheduledItemCreate,
    ScheduledItemUpdate,
    SiteConfig,
    SiteConfigUpdate,
    UpdateRecordStatus,
)
from settings import settings
from site_config import get_site_config, load_site_config, save_site_config

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# -----------------------------
# App Setup
# -----------------------------
app = FastAPI(title="Speaking Club API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.site_config = SiteConfig()

SUBMISSION_STATUS = {
    SubmissionError.PERMISSION_DENIED: 403,
    SubmissionError.UNAVAILABLE: 503,
    SubmissionError.UNKNOWN: 500,
    SubmissionError.NOT_FOUND: 404,
    SubmissionError.CLOSED: 409,
    SubmissionError.FULL: 409,
    SubmissionError.REGISTRATION_DISABLED: 409,
}


class ItemKind(str, Enum):
    sessions = "sessions"
    events = "events"

    @property
    def item_type(self) -> str:
        return "session" if self is ItemKind.sessions else "event"


# -----------------------------
# Utilities
# -----------------------------
def require_mentor(x_user_id: Optional[str] = Header(None), db: Database = Depends(get_db)) -> dict:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Sign in required")
    user = db["users"].find_one({"uid": x_user_id})
    if not user or user.get("role") != "mentor":
        raise HTTPException(status_code=403, detail="Mentor role required")
    return serialize(user)


def not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


@app.on_event("startup")
def on_startup():
    ensure_indexes(database.db)
    app.state.site_config = load_site_config(database.db)


# -----------------------------
# Health and root
# -----------------------------
@app.get("/")
def read_root():
    return {"message": "Speaking Club API is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database.db is None:
        return response
    response["database_name"] = database.db.name
    try:
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"Connected but Error: {str(e)[:50]}"
    return response


# -----------------------------
# Site configuration
# -----------------------------
@app.get("/api/site-config")
def read_site_config(config: SiteConfig = Depends(get_site_config)):
    return config.model_dump(by_alias=True)


@app.post("/api/admin/site-config/refresh")
def refresh_site_config(db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    app.state.site_config = load_site_config(db)
    return app.state.site_config.model_dump(by_alias=True)


@app.put("/api/admin/site-config")
def update_site_config(payload: SiteConfigUpdate, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    app.state.site_config = save_site_config(db, payload)
    return app.state.site_config.model_dump(by_alias=True)


# -----------------------------
# Admin: registrations
# -----------------------------
@app.get("/api/admin/registrations")
def list_registrations(
    search: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    status: Optional[str] = Query(None),
    db: Database = Depends(get_db),
    _: dict = Depends(require_mentor),
):
    records = registrations.filter_records(registrations.list_records(db), search, session_id, status)
    return {"registrations": records, "stats": registrations.registration_stats(records)}


@app.get("/api/admin/registrations/export")
def export_registrations(
    search: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    status: Optional[str] = Query(None),
    db: Database = Depends(get_db),
    _: dict = Depends(require_mentor),
):
    records = registrations.filter_records(registrations.list_records(db), search, session_id, status)
    filename = export_filename(utcnow().date())
    return Response(
        content=export_records(records),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.patch("/api/admin/registrations/{record_id}/status")
def update_record_status(record_id: str, payload: UpdateRecordStatus, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    try:
        return registrations.set_record_status(db, record_id, payload.status)
    except NotFoundError as e:
        raise not_found(e)


@app.patch("/api/admin/registrations/{record_id}/attendance")
def update_attendance(record_id: str, payload: AttendanceUpdate, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    try:
        return registrations.set_attendance(db, record_id, payload.attended)
    except NotFoundError as e:
        raise not_found(e)


@app.delete("/api/admin/registrations/{record_id}")
def delete_registration(record_id: str, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    try:
        registrations.delete_record(db, record_id)
    except NotFoundError as e:
        raise not_found(e)
    return {"deleted": True}


# -----------------------------
# Admin: sessions and events
# -----------------------------
@app.post("/api/admin/{kind}", status_code=201)
def create_item(
    kind: ItemKind,
    payload: ScheduledItemCreate,
    db: Database = Depends(get_db),
    config: SiteConfig = Depends(get_site_config),
    _: dict = Depends(require_mentor),
):
    return items.create_item(db, kind.item_type, payload, config)


@app.put("/api/admin/{kind}/{item_id}")
def update_item(kind: ItemKind, item_id: str, payload: ScheduledItemUpdate, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    try:
        return items.update_item(db, kind.item_type, item_id, payload)
    except NotFoundError as e:
        raise not_found(e)


@app.delete("/api/admin/{kind}/{item_id}")
def delete_item(kind: ItemKind, item_id: str, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    try:
        items.delete_item(db, kind.item_type, item_id)
    except NotFoundError as e:
        raise not_found(e)
    return {"deleted": True}


@app.post("/api/admin/{kind}/{item_id}/attendees")
def adjust_attendees(kind: ItemKind, item_id: str, payload: AttendeeAdjustment, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    try:
        count = items.adjust_attendee_count(db, kind.item_type, item_id, payload.delta)
    except NotFoundError as e:
        raise not_found(e)
    return {"currentAttendees": count}


@app.put("/api/admin/{kind}/{item_id}/registration-status")
def update_registration_status(kind: ItemKind, item_id: str, payload: ItemStatusUpdate, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    try:
        return items.set_registration_status(db, kind.item_type, item_id, payload.registration_status)
    except NotFoundError as e:
        raise not_found(e)


@app.post("/api/admin/{kind}/{item_id}/reconcile")
def reconcile_attendees(kind: ItemKind, item_id: str, db: Database = Depends(get_db), _: dict = Depends(require_mentor)):
    try:
        count = registrations.reconcile_attendee_count(db, kind.item_type, item_id)
    except NotFoundError as e:
        raise not_found(e)
    return {"currentAttendees": count}


# -----------------------------
# Public: sessions, events and sign-up
# Declared last, /api/{kind} would otherwise capture the routes above.
# -----------------------------
@app.get("/api/{kind}")
def list_items(kind: ItemKind, upcoming: bool = Query(False), db: Database = Depends(get_db)):
    return items.list_items(db, kind.item_type, upcoming=upcoming)


@app.get("/api/{kind}/{item_id}")
def read_item(kind: ItemKind, item_id: str, db: Database = Depends(get_db)):
    try:
        return items.get_item(db, kind.item_type, item_id)
    except NotFoundError as e:
        raise not_found(e)


@app.post("/api/{kind}/{item_id}/registrations", status_code=201)
def submit_registration(
    kind: ItemKind,
    item_id: str,
    form: RegistrationForm,
    db: Database = Depends(get_db),
    config: SiteConfig = Depends(get_site_config),
):
    result = registrations.submit_registration(db, kind.item_type, item_id, form, config)
    if not result.success:
        raise HTTPException(
            status_code=SUBMISSION_STATUS[result.error],
            detail={"error": result.error.value, "message": result.message},
        )
    return {
        "success": True,
        "registrationId": result.registration_id,
        "message": result.message,
        "confirmationSeconds": config.confirmation_seconds,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
