"""
Persistence gateway for the complaint tracker.

One MongoDB collection per entity. Collection names live here so the rest of
the code never spells them out by hand.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings

logger = logging.getLogger(__name__)

USER = "user"
ADMIN_AUTH = "admin_auth"
ADMIN_PROFILE = "admin_profile"
USER_PROFILE = "user_profile"
LOCATION = "location"
COMPLAINT = "complaint"
FEEDBACK = "feedback"


def connect(settings: Settings) -> Database:
    # MongoClient connects lazily; nothing blocks here if the server is down.
    client = MongoClient(settings.mongo_uri, serverSelectionTimeoutMS=5000)
    logger.info("Using MongoDB database %r", settings.database_name)
    return client[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db[USER].create_index([("email", ASCENDING)], unique=True)
    db[ADMIN_AUTH].create_index([("email", ASCENDING)], unique=True)
    db[ADMIN_PROFILE].create_index([("email", ASCENDING)], unique=True)
    db[COMPLAINT].create_index([("createdAt", ASCENDING)])


def ping(db: Database) -> bool:
    """Return True when the database answers a ping."""
    try:
        db.command("ping")
        return True
    except PyMongoError as e:
        logger.warning("Database ping failed: %s", e)
        return False


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> str:
    """Insert `data` with createdAt/updatedAt stamps and return the new id as a string."""
    stamp = now()
    doc = dict(data)
    doc.setdefault("createdAt", stamp)
    doc.setdefault("updatedAt", stamp)
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    projection: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a client-supplied id, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a Mongo document JSON friendly: `_id` becomes `id`, ObjectIds become strings."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        elif isinstance(value, ObjectId):
            out[key] = str(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out
