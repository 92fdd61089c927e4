# conductor/db/keywords.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Protocol

from pymongo import ASCENDING, UpdateOne
from pymongo.errors import PyMongoError

from conductor.errors import PersistenceError
from conductor.models.practice import KeywordData, Practice


COLLECTION = "keywords"


class KeywordStore(Protocol):
    def upsert_tracked(self, practice: Practice, keywords: List[KeywordData]) -> int: ...


class MongoKeywordStore:
    """
    Tracked keywords, one document per (client_id, keyword).
    Ranking positions belong to the rank tracker; an upsert here only refreshes
    volume and difficulty and never resets them.
    """

    def __init__(self, db):
        self._col = db[COLLECTION]

    def init_indexes(self) -> None:
        try:
            self._col.create_index([("client_id", ASCENDING), ("keyword", ASCENDING)], unique=True)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to create keyword indexes: {e}") from e

    def upsert_tracked(self, practice: Practice, keywords: List[KeywordData]) -> int:
        unique = list({k.keyword: k for k in keywords}.values())
        if not unique:
            return 0
        now = datetime.now(timezone.utc)
        ops = [
            UpdateOne(
                {"client_id": practice.id, "keyword": k.keyword},
                {
                    "$set": {
                        "org_id": practice.org_id,
                        "search_volume": k.search_volume,
                        "difficulty": k.difficulty,
                        "source": k.source or "scholar",
                        "updated_at": now,
                    },
                    "$setOnInsert": {
                        "keyword_type": "target",
                        "current_position": None,
                        "previous_position": None,
                        "best_position": None,
                        "serp_features": [],
                        "last_checked_at": None,
                        "created_at": now,
                    },
                },
                upsert=True,
            )
            for k in unique
        ]
        try:
            res = self._col.bulk_write(ops, ordered=False)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to save keywords for practice {practice.id}: {e}") from e
        return res.upserted_count + res.matched_count
