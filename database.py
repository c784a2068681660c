"""
Document store adapter

A single `Database` is constructed when the app starts, handed to every
action that touches MongoDB, and closed on shutdown. Pooling and
reconnection are left to the pymongo driver.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection

from settings import Settings

logger = logging.getLogger(__name__)

USERS = "users"
EVENTS = "events"
TEACHINGS = "teachings"
CONTRIBUTIONS = "contributions"
TEAM_MEMBERS = "teamMembers"
SAVED_EVENT_IDEAS = "savedEventIdeas"
SAVED_SERMON_OUTLINES = "savedSermonOutlines"

COLLECTIONS = [
    USERS,
    EVENTS,
    TEACHINGS,
    CONTRIBUTIONS,
    TEAM_MEMBERS,
    SAVED_EVENT_IDEAS,
    SAVED_SERMON_OUTLINES,
]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Return the ObjectId for `value`, or None when it is not a valid id."""
    if not value or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


class Database:
    def __init__(self, client: MongoClient, name: str):
        self.client = client
        self.name = name
        self.db = client[name]

    @classmethod
    def connect(cls, settings: Settings) -> "Database":
        logger.info("Connecting to MongoDB database %s", settings.database_name)
        return cls(MongoClient(settings.database_url), settings.database_name)

    def __getitem__(self, collection_name: str) -> Collection:
        return self.db[collection_name]

    def ensure_indexes(self) -> None:
        self.db[USERS].create_index([("email", ASCENDING)], unique=True)
        self.db[TEACHINGS].create_index([("id", ASCENDING)], unique=True)

    def ping(self) -> List[str]:
        """List collection names; raises if the server cannot be reached."""
        return self.db.list_collection_names()

    def close(self) -> None:
        logger.info("Closing MongoDB client")
        self.client.close()

    # -----------------------------
    # Helpers
    # -----------------------------
    def create_document(self, collection_name: str, data: Any) -> str:
        """Insert `data` (dict or pydantic model) and return the new id as a string."""
        if isinstance(data, BaseModel):
            doc = data.model_dump()
        else:
            doc = dict(data)
        doc.setdefault("created_at", utc_now_iso())
        result = self.db[collection_name].insert_one(doc)
        return str(result.inserted_id)

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
    ) -> List[Dict[str, Any]]:
        """Find documents, always ordered with `_id` as the final tie-breaker."""
        order = list(sort or [])
        if not any(key == "_id" for key, _ in order):
            order.append(("_id", ASCENDING))
        return list(self.db[collection_name].find(filter_dict or {}).sort(order))
