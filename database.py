"""
MongoDB access

Collections are named after the lower-cased schema class
(User -> "user", TestResult -> "testresult").
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import config
from errors import AppError, NotFound

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if config.DATABASE_URL:
    client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = client[config.DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise AppError("Database is not configured")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document with timestamps and return it with its _id"""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def to_object_id(value: Any, label: str = "Document") -> ObjectId:
    """Parse an id coming from a request, 404 when it cannot exist"""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFound(f"{label} not found")


def serialize(value: Any) -> Any:
    """Make a Mongo document JSON friendly (ObjectId -> str)"""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: serialize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [serialize(item) for item in value]
    return value


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    database["user"].create_index("google_id", unique=True, sparse=True)
    database["course"].create_index([("is_published", ASCENDING), ("category", ASCENDING)])
    database["course"].create_index("creator")
    database["test"].create_index("course_id", unique=True)
    database["testresult"].create_index(
        [("user_id", ASCENDING), ("course_id", ASCENDING), ("created_at", DESCENDING)]
    )
    logger.info("Database indexes ensured")
