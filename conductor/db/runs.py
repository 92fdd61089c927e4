# conductor/db/runs.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from conductor.errors import PersistenceError
from conductor.models.runs import Run, RunCreate


COLLECTION = "conductor_runs"


class RunStore(Protocol):
    def create(self, data: RunCreate) -> Run: ...
    def checkpoint(self, run_id: str, snapshot: Dict[str, Any], stage: str) -> None: ...
    def complete(self, run_id: str, result: Dict[str, Any]) -> bool: ...
    def fail(self, run_id: str, error: str) -> bool: ...
    def get(self, run_id: str) -> Optional[Run]: ...
    def list_active(self, started_before: Optional[datetime] = None) -> List[Run]: ...


def new_run(data: RunCreate) -> Run:
    return Run(
        run_id=str(uuid4()),
        started_at=datetime.now(timezone.utc),
        **data.model_dump(),
    )


class MongoRunStore:
    """
    One document per conductor run, keyed by `run_id`.
    Every mutation after `create` is filtered on `status == "running"`, so
    checkpoints and terminal writes against a finished run match nothing.
    """

    def __init__(self, db):
        self._col = db[COLLECTION]

    def init_indexes(self) -> None:
        try:
            self._col.create_index([("run_id", ASCENDING)], unique=True)
            self._col.create_index([("practice_id", ASCENDING), ("started_at", DESCENDING)])
            self._col.create_index([("status", ASCENDING), ("started_at", ASCENDING)])
        except PyMongoError as e:
            raise PersistenceError(f"Failed to create run indexes: {e}") from e

    def create(self, data: RunCreate) -> Run:
        run = new_run(data)
        try:
            self._col.insert_one(run.model_dump())
        except PyMongoError as e:
            raise PersistenceError(f"Failed to create conductor run: {e}") from e
        return run

    def checkpoint(self, run_id: str, snapshot: Dict[str, Any], stage: str) -> None:
        self._update(
            run_id,
            {"$set": {"checkpoint": snapshot, "stage": stage}, "$addToSet": {"stages": stage}},
            action="checkpoint",
        )

    def complete(self, run_id: str, result: Dict[str, Any]) -> bool:
        return self._update(
            run_id,
            {
                "$set": {
                    "status": "completed",
                    "result": result,
                    "error": None,
                    "stage": "completed",
                    "completed_at": datetime.now(timezone.utc),
                },
                "$addToSet": {"stages": "completed"},
            },
            action="complete",
        )

    def fail(self, run_id: str, error: str) -> bool:
        return self._update(
            run_id,
            {
                "$set": {
                    "status": "failed",
                    "error": error,
                    "completed_at": datetime.now(timezone.utc),
                },
                "$addToSet": {"stages": "failed"},
            },
            action="fail",
        )

    def get(self, run_id: str) -> Optional[Run]:
        try:
            doc = self._col.find_one({"run_id": run_id})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load run {run_id}: {e}") from e
        return Run.model_validate(doc) if doc else None

    def list_by_practice(self, practice_id: str, limit: int = 50) -> List[Run]:
        try:
            cur = (
                self._col.find({"practice_id": practice_id})
                .sort("started_at", DESCENDING)
                .limit(min(limit, 200))
            )
            return [Run.model_validate(d) for d in cur]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list runs for practice {practice_id}: {e}") from e

    def list_active(self, started_before: Optional[datetime] = None) -> List[Run]:
        filt: Dict[str, Any] = {"status": "running"}
        if started_before is not None:
            filt["started_at"] = {"$lt": started_before}
        try:
            cur = self._col.find(filt).sort("started_at", ASCENDING)
            return [Run.model_validate(d) for d in cur]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list active runs: {e}") from e

    def _update(self, run_id: str, update: Dict[str, Any], *, action: str) -> bool:
        try:
            res = self._col.update_one({"run_id": run_id, "status": "running"}, update)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to {action} run {run_id}: {e}") from e
        return res.modified_count > 0
