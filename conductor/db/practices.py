# conductor/db/practices.py
from __future__ import annotations

from typing import List, Optional, Protocol

from pymongo.errors import PyMongoError

from conductor.errors import PersistenceError
from conductor.models.practice import Practice


COLLECTION = "clients"


class PracticeStore(Protocol):
    def get(self, practice_id: str) -> Optional[Practice]: ...
    def list_active(self) -> List[Practice]: ...


class MongoPracticeStore:
    """Read-only access to practice records; this service never writes them."""

    def __init__(self, db):
        self._col = db[COLLECTION]

    def get(self, practice_id: str) -> Optional[Practice]:
        try:
            doc = self._col.find_one({"id": practice_id})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load practice {practice_id}: {e}") from e
        return Practice.model_validate(doc) if doc else None

    def list_active(self) -> List[Practice]:
        try:
            return [Practice.model_validate(d) for d in self._col.find({"account_health": "active"})]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list active practices: {e}") from e
