"""
MongoDB access for the storefront.

`db` is None when DATABASE_URL / DATABASE_NAME are not configured; routes check
for that before doing any work.
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.database import Database

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db: Optional[Database] = None
if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]


def _resolve(database: Optional[Database]) -> Database:
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not configured")
    return target


def create_document(collection_name: str, data: Dict[str, Any], database: Optional[Database] = None) -> str:
    """Insert a document with created_at/updated_at stamps and return its id as a string."""
    target = _resolve(database)
    now = datetime.now(timezone.utc)
    doc = {**data, "created_at": now, "updated_at": now}
    inserted_id = target[collection_name].insert_one(doc).inserted_id
    return str(inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None, sort: Optional[List[tuple]] = None,
                  database: Optional[Database] = None) -> List[Dict[str, Any]]:
    target = _resolve(database)
    cursor = target[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
