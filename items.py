"""
Sessions and events: two collections of identically shaped scheduled items.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, oid, serialize, to_utc_naive, utcnow
from schemas import ItemType, ScheduledItem, ScheduledItemCreate, ScheduledItemUpdate, SiteConfig

logger = logging.getLogger(__name__)

COLLECTIONS: Dict[str, str] = {"session": "sessions", "event": "events"}


class NotFoundError(Exception):
    pass


@dataclass(frozen=True)
class StatusLabel:
    label: str
    action: str
    can_submit: bool


def derive_status(registration_status: Optional[str], current: int, maximum: int) -> StatusLabel:
    """
    Label shown next to an item. The admin-set status wins when it is
    "closed"; otherwise either an explicit waitlist or a full counter
    gives "Waitlist". Waitlisted submissions still create a normal record.
    """
    if registration_status == "closed":
        return StatusLabel("Closed", "closed", False)
    if registration_status == "waitlist" or (current or 0) >= maximum:
        return StatusLabel("Waitlist", "waitlist", True)
    return StatusLabel("Open", "register", True)


def collection_for(item_type: ItemType) -> str:
    return COLLECTIONS[item_type]


def present(doc: Dict[str, Any]) -> Dict[str, Any]:
    """API view of a stored item, with the derived status attached."""
    item = serialize(doc)
    item.setdefault("currentAttendees", 0)
    item.setdefault("registrationStatus", "open")
    status = derive_status(item["registrationStatus"], item["currentAttendees"], item.get("maxAttendees", 0))
    item["statusLabel"] = status.label
    item["statusAction"] = status.action
    item["canSubmit"] = status.can_submit
    return item


def find_item(db: Database, item_type: ItemType, item_id: str) -> Dict[str, Any]:
    doc = db[collection_for(item_type)].find_one({"_id": oid(item_id)})
    if doc is None:
        raise NotFoundError(f"{item_type.capitalize()} not found")
    return doc


def list_items(db: Database, item_type: ItemType, upcoming: bool = False) -> List[Dict[str, Any]]:
    coll = db[collection_for(item_type)]
    if upcoming:
        docs = coll.find({"date": {"$gte": utcnow()}}).sort("date", 1)
    else:
        docs = coll.find().sort("date", -1)
    return [present(d) for d in docs]


def get_item(db: Database, item_type: ItemType, item_id: str) -> Dict[str, Any]:
    return present(find_item(db, item_type, item_id))


def create_item(db: Database, item_type: ItemType, payload: ScheduledItemCreate, site_config: SiteConfig) -> Dict[str, Any]:
    item = ScheduledItem(
        **payload.model_dump(exclude={"max_attendees", "date"}),
        date=to_utc_naive(payload.date),
        max_attendees=payload.max_attendees or site_config.max_session_capacity,
        current_attendees=0,
    )
    item_id = create_document(db, collection_for(item_type), item.model_dump(by_alias=True))
    logger.info("Created %s %s (%s)", item_type, item_id, item.title)
    return get_item(db, item_type, item_id)


def update_item(db: Database, item_type: ItemType, item_id: str, payload: ScheduledItemUpdate) -> Dict[str, Any]:
    changes = payload.model_dump(by_alias=True, exclude_none=True)
    if "date" in changes:
        changes["date"] = to_utc_naive(changes["date"])
    changes["updatedAt"] = utcnow()
    res = db[collection_for(item_type)].update_one({"_id": oid(item_id)}, {"$set": changes})
    if res.matched_count == 0:
        raise NotFoundError(f"{item_type.capitalize()} not found")
    return get_item(db, item_type, item_id)


def delete_item(db: Database, item_type: ItemType, item_id: str) -> None:
    # Registrations keep their sessionId; they are not cascaded.
    res = db[collection_for(item_type)].delete_one({"_id": oid(item_id)})
    if res.deleted_count == 0:
        raise NotFoundError(f"{item_type.capitalize()} not found")
    logger.info("Deleted %s %s", item_type, item_id)


def adjust_attendee_count(db: Database, item_type: ItemType, item_id: str, delta: int) -> int:
    """
    Move currentAttendees by one within [0, maxAttendees].

    Uses the same atomic $inc as registration submission; the bound is part
    of the update filter, so a step past either end matches nothing and is a
    no-op.
    """
    if delta not in (1, -1):
        raise ValueError("delta must be +1 or -1")
    item = find_item(db, item_type, item_id)
    if delta > 0:
        bound = {"$or": [
            {"currentAttendees": {"$lt": item.get("maxAttendees", 0)}},
            {"currentAttendees": {"$exists": False}},
        ]}
    else:
        bound = {"currentAttendees": {"$gt": 0}}
    updated = db[collection_for(item_type)].find_one_and_update(
        {"_id": item["_id"], **bound},
        {"$inc": {"currentAttendees": delta}, "$set": {"updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        logger.info("Attendee count of %s %s already at bound, ignoring %+d", item_type, item_id, delta)
        return find_item(db, item_type, item_id).get("currentAttendees", 0)
    return updated["currentAttendees"]


def set_registration_status(db: Database, item_type: ItemType, item_id: str, status: str) -> Dict[str, Any]:
    res = db[collection_for(item_type)].update_one(
        {"_id": oid(item_id)},
        {"$set": {"registrationStatus": status, "updatedAt": utcnow()}},
    )
    if res.matched_count == 0:
        raise NotFoundError(f"{item_type.capitalize()} not found")
    return get_item(db, item_type, item_id)
