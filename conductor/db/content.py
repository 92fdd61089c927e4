# conductor/db/content.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Protocol
from uuid import uuid4

from pymongo.errors import PyMongoError

from conductor.errors import PersistenceError


COLLECTION = "content_pieces"


class ContentStore(Protocol):
    def save_draft(self, piece: Dict[str, Any]) -> str: ...


class MongoContentStore:
    def __init__(self, db):
        self._col = db[COLLECTION]

    def save_draft(self, piece: Dict[str, Any]) -> str:
        """Insert a drafted piece awaiting review and return its id."""
        content_id = str(uuid4())
        now = datetime.now(timezone.utc)
        doc = {
            **piece,
            "id": content_id,
            "status": "in_review",
            "created_at": now,
            "updated_at": now,
        }
        try:
            self._col.insert_one(doc)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to save content piece: {e}") from e
        return content_id
