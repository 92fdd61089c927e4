# conductor/recovery.py
# Runs are never resumed from their checkpoint; a run still `running` long
# after it started is assumed abandoned (crash/redeploy) and failed here.
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from conductor.db.runs import RunStore
from conductor.logging import safe_extra

logger = logging.getLogger("conductor.recovery")


def reap_stale_runs(store: RunStore, *, max_age: timedelta, now: Optional[datetime] = None) -> List[str]:
    cutoff = (now or datetime.now(timezone.utc)) - max_age
    reaped: List[str] = []
    for run in store.list_active(started_before=cutoff):
        if store.fail(run.run_id, f"abandoned at stage {run.stage}"):
            reaped.append(run.run_id)
            logger.warning("recovery.run_reaped", extra=safe_extra({"run_id": run.run_id, "stage": run.stage}))
    return reaped
