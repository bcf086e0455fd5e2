"""
MongoDB connection and document helpers.

The client is created lazily by pymongo, so importing this module never
blocks on the server. Routes receive the database through ``get_db`` so
tests can swap it out.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, GEOSPHERE, MongoClient
from pymongo.database import Database

import config
from logging_config import get_logger

logger = get_logger(__name__)

client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
db = client[config.DATABASE_NAME]

# Fields that never leave the API
PRIVATE_FIELDS = ("password_hash", "reset_password_token", "reset_password_expire")


def get_db() -> Database:
    return db


def to_obj_id(id_str: Any) -> ObjectId:
    # bson.errors.InvalidId propagates to the error translator (404)
    return id_str if isinstance(id_str, ObjectId) else ObjectId(str(id_str))


def sanitize(doc: Optional[Dict]) -> Optional[Dict]:
    if not doc:
        return doc
    d = {k: v for k, v in doc.items() if k not in PRIVATE_FIELDS}
    if "_id" in d:
        d["_id"] = str(d["_id"])
    return d


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> Dict:
    """Insert a document stamped with created_at/updated_at and return it."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    doc["created_at"] = doc["updated_at"] = now()
    res = database[collection_name].insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict] = None, limit: Optional[int] = None) -> List[Dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return [sanitize(d) for d in cursor]


def ensure_indexes(database: Database) -> None:
    database["bootcamp"].create_index([("name", ASCENDING)], unique=True)
    database["bootcamp"].create_index([("location", GEOSPHERE)])
    database["review"].create_index([("bootcamp", ASCENDING), ("user", ASCENDING)], unique=True)
    database["user"].create_index([("email", ASCENDING)], unique=True)
    logger.info("Indexes ensured on database %s", database.name)
