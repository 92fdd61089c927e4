# conductor/db/actions.py
# Approval-queue items ("agent actions") proposed by the scholar and ghostwriter stages.
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol
from uuid import uuid4

from pymongo.errors import PyMongoError

from conductor.errors import PersistenceError


COLLECTION = "agent_actions"


class ActionStore(Protocol):
    def record(self, action: Dict[str, Any]) -> str: ...
    def record_many(self, actions: List[Dict[str, Any]]) -> List[str]: ...


def _doc(action: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    return {
        "status": "pending",
        "severity": "info",
        "rollback_data": {},
        "approved_by": None,
        "approved_at": None,
        "deployed_at": None,
        **action,
        "id": str(uuid4()),
        "created_at": now,
    }


class MongoActionStore:
    def __init__(self, db):
        self._col = db[COLLECTION]

    def record(self, action: Dict[str, Any]) -> str:
        doc = _doc(action, datetime.now(timezone.utc))
        try:
            self._col.insert_one(doc)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to queue {action.get('action_type', 'action')}: {e}") from e
        return doc["id"]

    def record_many(self, actions: List[Dict[str, Any]]) -> List[str]:
        if not actions:
            return []
        now = datetime.now(timezone.utc)
        docs = [_doc(a, now) for a in actions]
        try:
            self._col.insert_many(docs)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to queue {len(docs)} actions: {e}") from e
        return [d["id"] for d in docs]
