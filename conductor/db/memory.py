# conductor/db/memory.py
from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from conductor.models.runs import Run, RunCreate
from conductor.db.runs import new_run


class InMemoryRunStore:
    """Process-local run store with the same guarded semantics as MongoRunStore."""

    def __init__(self):
        self._runs: Dict[str, Run] = {}
        self._lock = threading.Lock()

    def create(self, data: RunCreate) -> Run:
        run = new_run(data)
        with self._lock:
            self._runs[run.run_id] = run
        return run.model_copy(deep=True)

    def checkpoint(self, run_id: str, snapshot: Dict[str, Any], stage: str) -> None:
        with self._lock:
            run = self._running(run_id)
            if run is None:
                return
            run.checkpoint = copy.deepcopy(snapshot)
            run.stage = stage
            if stage not in run.stages:
                run.stages.append(stage)

    def complete(self, run_id: str, result: Dict[str, Any]) -> bool:
        with self._lock:
            run = self._running(run_id)
            if run is None:
                return False
            run.status = "completed"
            run.result = copy.deepcopy(result)
            run.error = None
            run.stage = "completed"
            run.completed_at = datetime.now(timezone.utc)
            if "completed" not in run.stages:
                run.stages.append("completed")
            return True

    def fail(self, run_id: str, error: str) -> bool:
        with self._lock:
            run = self._running(run_id)
            if run is None:
                return False
            run.status = "failed"
            run.error = error
            run.completed_at = datetime.now(timezone.utc)
            if "failed" not in run.stages:
                run.stages.append("failed")
            return True

    def get(self, run_id: str) -> Optional[Run]:
        with self._lock:
            run = self._runs.get(run_id)
            return run.model_copy(deep=True) if run else None

    def list_by_practice(self, practice_id: str, limit: int = 50) -> List[Run]:
        with self._lock:
            runs = [r for r in self._runs.values() if r.practice_id == practice_id]
        runs.sort(key=lambda r: r.started_at, reverse=True)
        return [r.model_copy(deep=True) for r in runs[:limit]]

    def list_active(self, started_before: Optional[datetime] = None) -> List[Run]:
        with self._lock:
            runs = [
                r for r in self._runs.values()
                if r.status == "running" and (started_before is None or r.started_at < started_before)
            ]
        runs.sort(key=lambda r: r.started_at)
        return [r.model_copy(deep=True) for r in runs]

    def _running(self, run_id: str) -> Optional[Run]:
        run = self._runs.get(run_id)
        if run is None or run.is_terminal:
            return None
        return run
