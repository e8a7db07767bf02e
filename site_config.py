import logging
from typing import Optional

from fastapi import Request
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import utcnow
from schemas import SiteConfig, SiteConfigUpdate

logger = logging.getLogger(__name__)

COLLECTION = "siteConfig"


def load_site_config(database: Optional[Database]) -> SiteConfig:
    """
    Build a fresh snapshot: stored values over the defaults.

    Falls back to the defaults when the store is missing or unreachable,
    so the public site keeps rendering.
    """
    if database is None:
        return SiteConfig()
    try:
        stored = database[COLLECTION].find_one({}, sort=[("_id", 1)])
    except PyMongoError:
        logger.error("Could not load site configuration, using defaults", exc_info=True)
        return SiteConfig()
    if not stored:
        logger.info("No site configuration stored, using defaults")
        return SiteConfig()
    stored.pop("_id", None)
    try:
        return SiteConfig.model_validate({**SiteConfig().model_dump(by_alias=True), **stored})
    except ValidationError:
        logger.error("Stored site configuration is invalid, using defaults", exc_info=True)
        return SiteConfig()


def save_site_config(database: Database, changes: SiteConfigUpdate) -> SiteConfig:
    values = changes.model_dump(by_alias=True, exclude_none=True)
    values["updatedAt"] = utcnow()
    database[COLLECTION].update_one({}, {"$set": values}, upsert=True)
    return load_site_config(database)


def get_site_config(request: Request) -> SiteConfig:
    return request.app.state.site_config
