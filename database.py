"""
MongoDB access for the marketplace.

The handle is created once at startup from Settings and passed to the app;
collections are named after the schema classes in lowercase:
- user    (credential store)
- product (catalog store, reviews embedded)
- order   (order intake)
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import Settings
from errors import ValidationFailed

logger = logging.getLogger(__name__)


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url)
    logger.info("Using MongoDB database %s", settings.database_name)
    return client[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(id_str: Any) -> ObjectId:
    # ObjectId(None) would mint a fresh id
    if id_str is None:
        raise ValidationFailed("Invalid id")
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationFailed("Invalid id")


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def sanitize(doc: Optional[Dict]) -> Optional[Dict]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    d.pop("password_hash", None)
    return d


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> str:
    doc = dict(data)
    stamp = now_utc()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    res = db[collection_name].insert_one(doc)
    return str(res.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict] = None,
                  limit: Optional[int] = None) -> List[Dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
