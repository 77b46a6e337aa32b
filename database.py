"""
MongoDB access for the storefront.

One MongoClient is shared by the whole process. Route handlers receive the
database through the ``get_db`` dependency so tests can swap in another one.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
db = client[config.DATABASE_NAME]


def get_db() -> Database:
    return db


def ping(database: Database) -> None:
    """Raises if the server behind ``database`` cannot be reached."""
    database.client.admin.command("ping")
    logger.info("MongoDB connected: database=%s", database.name)


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    database["order"].create_index([("user", 1), ("order_date", -1)])


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at; returns its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc.setdefault("updated_at", stamp)
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    sort: Optional[list] = None,
    projection: Optional[dict] = None,
    limit: int = 0,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: str, what: str = "Resource") -> ObjectId:
    """Parse a path id; malformed ids are reported as missing documents."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=404, detail=f"{what} not found")


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_doc(doc: Optional[dict]) -> Optional[Dict[str, Any]]:
    """Make a Mongo document JSON friendly: ``_id`` becomes ``id``."""
    if not doc:
        return doc
    out = {}
    for k, v in doc.items():
        if k == "_id":
            out["id"] = _serialize_value(v)
        else:
            out[k] = _serialize_value(v)
    return out
