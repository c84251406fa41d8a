"""
MongoDB access for the Shoe Catalog API.

Exposes the shared client/database, the ``get_db`` dependency used by the
routers, and small helpers for inserting documents and turning them into
JSON-safe dicts.
"""
import os
from datetime import datetime, timezone
from typing import Any, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "shoe_catalog")

# MongoClient connects lazily, so importing this module never blocks on the server.
client = MongoClient(DATABASE_URL)
db = client[DATABASE_NAME]


def get_db() -> Database:
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_indexes(database: Database):
    """Create the unique indexes the API relies on."""
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["catalog"].create_index(
        [("type", ASCENDING), ("season", ASCENDING)], unique=True
    )
    database["product"].create_index([("catalog", ASCENDING)])


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> ObjectId:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    doc["created_at"] = now()
    doc["updated_at"] = now()
    result = database[collection_name].insert_one(doc)
    return result.inserted_id


def get_documents(database: Database, collection_name: str, filter_dict: Optional[dict] = None):
    return list(database[collection_name].find(filter_dict or {}))


def to_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Parse a 24-char hex id, returning None for anything else."""
    if not isinstance(value, str) or len(value) != 24:
        return None
    try:
        return ObjectId(value)
    except InvalidId:
        return None


def _clean(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [_clean(v) for v in value]
    if isinstance(value, dict):
        return serialize_doc(value)
    return value


def serialize_doc(doc: Optional[dict]):
    """Convert a Mongo document to a JSON-safe dict with ``id`` instead of ``_id``."""
    if not doc:
        return doc
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        elif key == "password_hash":
            continue
        else:
            out[key] = _clean(value)
    return out
