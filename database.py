"""
MongoDB access for the club backend.

`db` is None when DATABASE_URL / DATABASE_NAME are not set; routes turn
that into a 503 through `get_db`.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pymongo import MongoClient
from pymongo.database import Database

from settings import settings

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.DATABASE_URL and settings.DATABASE_NAME:
    client = MongoClient(settings.DATABASE_URL)
    db = client[settings.DATABASE_NAME]
    logger.info("Connected to MongoDB database %s", settings.DATABASE_NAME)


def utcnow() -> datetime:
    # pymongo hands back naive UTC datetimes; keep every stored value that way
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def oid(s: str) -> ObjectId:
    try:
        return ObjectId(s)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid ID")


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Swap Mongo's `_id` for a string `id`."""
    if doc is None:
        return None
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def in_session(session) -> Dict[str, Any]:
    """Keyword arguments that bind a store call to a transaction, if any."""
    return {"session": session} if session is not None else {}


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> str:
    now = utcnow()
    data = dict(data)
    data.setdefault("createdAt", now)
    data["updatedAt"] = now
    result = database[collection_name].insert_one(data)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(d) for d in cursor]


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured. Please set DATABASE_URL and DATABASE_NAME.")
    return db


def ensure_indexes(database: Optional[Database]):
    if database is None:
        return
    try:
        database["users"].create_index("uid", unique=True)
        database["sessions"].create_index("date")
        database["events"].create_index("date")
        database["registrations"].create_index([("sessionId", 1), ("status", 1)])
        database["registrations"].create_index([("registrationDate", -1)])
    except Exception:
        # Startup must survive an unreachable or read-only store
        logger.warning("Could not create indexes", exc_info=True)
