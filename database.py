"""
MongoDB access helpers.

`db` is created once per process. The client connects lazily, so importing
this module never blocks on the network.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database

from config import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()
_client: MongoClient = MongoClient(_settings.database_url, tz_aware=True)
db: Database = _client[_settings.database_name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_collection(name: str):
    return db[name]


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    # ObjectId is not JSON serializable
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a document, stamping created_at/updated_at. Returns the stored document."""
    data_dict = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    return data_dict


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def next_sequence(name: str) -> int:
    """Atomically increment and return the named counter (starting at 1)."""
    counter = db["counters"].find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["seq"]


def ensure_indexes() -> None:
    db["users"].create_index([("email", ASCENDING)], unique=True)
    db["waste_requests"].create_index([("request_id", ASCENDING)], unique=True)
    db["waste_requests"].create_index([("created_by", ASCENDING), ("created_at", DESCENDING)])
    db["waste_requests"].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    logger.info("Database indexes ensured", extra={"database": db.name})
