"""
Registration workflow: public submissions and the admin side of the
registrations collection.

A submission writes one registration document and bumps the parent item's
`currentAttendees` with an atomic $inc. The two writes either run in one
transaction (USE_TRANSACTIONS) or run in sequence with the record removed
again when the increment does not land.

Status changes and deletions of records never touch the counter;
`reconcile_attendee_count` recomputes it from the records on demand.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pymongo.database import Database
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from database import get_documents, in_session, oid, serialize, utcnow
from items import NotFoundError, collection_for, find_item
from schemas import ItemType, Registration, RegistrationForm, SiteConfig
from settings import settings

logger = logging.getLogger(__name__)

COLLECTION = "registrations"

# Unauthorized, AuthenticationFailed
PERMISSION_CODES = {13, 18}


class SubmissionError(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"
    NOT_FOUND = "not_found"
    CLOSED = "closed"
    FULL = "full"
    REGISTRATION_DISABLED = "registration_disabled"


MESSAGES = {
    SubmissionError.PERMISSION_DENIED: "Permission denied. Please check your connection and try again.",
    SubmissionError.UNAVAILABLE: "Service temporarily unavailable. Please try again in a moment.",
    SubmissionError.UNKNOWN: "Registration failed. Please try again.",
    SubmissionError.NOT_FOUND: "This session or event no longer exists.",
    SubmissionError.CLOSED: "Registration for this session is closed.",
    SubmissionError.FULL: "This session has reached its maximum capacity.",
    SubmissionError.REGISTRATION_DISABLED: "Registration is currently disabled.",
}


@dataclass
class SubmissionResult:
    success: bool
    registration_id: Optional[str] = None
    error: Optional[SubmissionError] = None
    message: str = ""


class _Rejected(Exception):
    def __init__(self, reason: SubmissionError):
        super().__init__(reason.value)
        self.reason = reason


def _failure(reason: SubmissionError) -> SubmissionResult:
    return SubmissionResult(success=False, error=reason, message=MESSAGES[reason])


def classify_store_error(exc: PyMongoError) -> SubmissionError:
    if isinstance(exc, ConnectionFailure):
        return SubmissionError.UNAVAILABLE
    if isinstance(exc, OperationFailure) and exc.code in PERMISSION_CODES:
        return SubmissionError.PERMISSION_DENIED
    return SubmissionError.UNKNOWN


def build_record(item_type: ItemType, item: Dict[str, Any], form: RegistrationForm) -> Dict[str, Any]:
    record = Registration(
        **form.model_dump(),
        session_id=str(item["_id"]),
        session_title=item.get("title") or item.get("topic") or "",
        session_date=item.get("date"),
        session_type=item.get("type"),
        item_type=item_type,
        registration_date=utcnow(),
        status="confirmed",
        attended=False,
    )
    return record.model_dump(by_alias=True)


def _increment(db: Database, item_type: ItemType, item: Dict[str, Any], policy: str, session=None) -> bool:
    query: Dict[str, Any] = {"_id": item["_id"]}
    if policy == "enforce":
        query["$or"] = [
            {"currentAttendees": {"$lt": item.get("maxAttendees", 0)}},
            {"currentAttendees": {"$exists": False}},
        ]
    res = db[collection_for(item_type)].update_one(query, {"$inc": {"currentAttendees": 1}}, **in_session(session))
    return res.matched_count == 1


def _rejection(db: Database, item_type: ItemType, item: Dict[str, Any], session=None) -> _Rejected:
    still_there = db[collection_for(item_type)].find_one({"_id": item["_id"]}, **in_session(session))
    return _Rejected(SubmissionError.FULL if still_there else SubmissionError.NOT_FOUND)


def _write_transactional(db: Database, item_type: ItemType, item: Dict[str, Any], record: Dict[str, Any], policy: str) -> str:
    def callback(session):
        inserted = db[COLLECTION].insert_one(dict(record), session=session)
        if not _increment(db, item_type, item, policy, session=session):
            raise _rejection(db, item_type, item, session=session)
        return str(inserted.inserted_id)

    with db.client.start_session() as session:
        return session.with_transaction(callback)


def _compensate(db: Database, registration_id) -> None:
    try:
        db[COLLECTION].delete_one({"_id": registration_id})
    except PyMongoError:
        logger.error("Registration %s is stored without its attendee count", registration_id, exc_info=True)


def _write_sequential(db: Database, item_type: ItemType, item: Dict[str, Any], record: Dict[str, Any], policy: str) -> str:
    registration_id = db[COLLECTION].insert_one(dict(record)).inserted_id
    try:
        landed = _increment(db, item_type, item, policy)
    except PyMongoError:
        logger.warning("Attendee count update failed, removing registration %s", registration_id)
        _compensate(db, registration_id)
        raise
    if not landed:
        _compensate(db, registration_id)
        raise _rejection(db, item_type, item)
    return str(registration_id)


def submit_registration(
    db: Database,
    item_type: ItemType,
    item_id: str,
    form: RegistrationForm,
    site_config: SiteConfig,
    policy: Optional[str] = None,
    use_transactions: Optional[bool] = None,
) -> SubmissionResult:
    """
    Register one person for a session or event.

    Store failures come back as a result with a user-facing message rather
    than an exception; nothing is retried.
    """
    policy = policy or settings.CAPACITY_POLICY
    if use_transactions is None:
        use_transactions = settings.USE_TRANSACTIONS

    if not site_config.registration_enabled:
        return _failure(SubmissionError.REGISTRATION_DISABLED)

    try:
        item = find_item(db, item_type, item_id)
        if item.get("registrationStatus") == "closed":
            return _failure(SubmissionError.CLOSED)
        record = build_record(item_type, item, form)
        if use_transactions:
            registration_id = _write_transactional(db, item_type, item, record, policy)
        else:
            registration_id = _write_sequential(db, item_type, item, record, policy)
    except NotFoundError:
        return _failure(SubmissionError.NOT_FOUND)
    except _Rejected as exc:
        return _failure(exc.reason)
    except PyMongoError as exc:
        reason = classify_store_error(exc)
        logger.warning("Registration for %s %s failed: %s", item_type, item_id, reason.value, exc_info=True)
        return _failure(reason)

    logger.info("Registered %s for %s %s", form.email, item_type, item_id)
    return SubmissionResult(
        success=True,
        registration_id=registration_id,
        message=f"Thank you for registering for {record['sessionTitle']}.",
    )


# -----------------------------
# Admin side
# -----------------------------
def list_records(db: Database) -> List[Dict[str, Any]]:
    return get_documents(db, COLLECTION, sort=[("registrationDate", -1)])


def filter_records(
    records: Iterable[Dict[str, Any]],
    search: Optional[str] = None,
    session_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    term = (search or "").strip().lower()
    session_id = None if session_id in (None, "", "all") else session_id
    status = None if status in (None, "", "all") else status

    def matches(r: Dict[str, Any]) -> bool:
        if term:
            haystack = (r.get("firstName"), r.get("lastName"), r.get("email"), r.get("sessionTitle"))
            if not any(term in (field or "").lower() for field in haystack):
                return False
        if session_id and r.get("sessionId") != session_id:
            return False
        if status and r.get("status") != status:
            return False
        return True

    return [r for r in records if matches(r)]


def registration_stats(records: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    records = list(records)
    return {
        "total": len(records),
        "confirmed": sum(1 for r in records if r.get("status") == "confirmed"),
        "pending": sum(1 for r in records if r.get("status") == "pending"),
        "attended": sum(1 for r in records if r.get("attended")),
    }


def _update_record(db: Database, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    changes["updatedAt"] = utcnow()
    res = db[COLLECTION].update_one({"_id": oid(record_id)}, {"$set": changes})
    if res.matched_count == 0:
        raise NotFoundError("Registration not found")
    return serialize(db[COLLECTION].find_one({"_id": oid(record_id)}))


def set_record_status(db: Database, record_id: str, status: str) -> Dict[str, Any]:
    # Any status may follow any other, a cancelled record can be reopened.
    return _update_record(db, record_id, {"status": status})


def set_attendance(db: Database, record_id: str, attended: bool) -> Dict[str, Any]:
    return _update_record(db, record_id, {"attended": attended})


def delete_record(db: Database, record_id: str) -> None:
    res = db[COLLECTION].delete_one({"_id": oid(record_id)})
    if res.deleted_count == 0:
        raise NotFoundError("Registration not found")
    logger.info("Deleted registration %s", record_id)


def reconcile_attendee_count(db: Database, item_type: ItemType, item_id: str) -> int:
    """Reset currentAttendees to the number of non-cancelled registrations."""
    item = find_item(db, item_type, item_id)
    count = db[COLLECTION].count_documents(
        {"sessionId": str(item["_id"]), "itemType": item_type, "status": {"$ne": "cancelled"}}
    )
    if count != item.get("currentAttendees", 0):
        logger.warning(
            "Attendee count of %s %s drifted: stored %s, registrations %s",
            item_type, item_id, item.get("currentAttendees", 0), count,
        )
    db[collection_for(item_type)].update_one(
        {"_id": item["_id"]}, {"$set": {"currentAttendees": count, "updatedAt": utcnow()}}
    )
    return count
