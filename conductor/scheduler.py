# conductor/scheduler.py
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from pydantic import BaseModel

from conductor.db.practices import PracticeStore
from conductor.logging import safe_extra
from conductor.models.practice import Practice
from conductor.pipeline.conductor import Conductor

logger = logging.getLogger("conductor.scheduler")


class PracticeOutcome(BaseModel):
    practice_id: str
    status: str                  # completed | failed | error
    run_id: Optional[str] = None
    error: Optional[str] = None


async def run_weekly_pipeline(
    conductor: Conductor,
    practices: PracticeStore,
    *,
    max_concurrent_runs: int = 4,
) -> List[PracticeOutcome]:
    """Run the conductor for every active practice; one practice erroring never stops the rest."""
    active = practices.list_active()
    sem = asyncio.Semaphore(max(1, max_concurrent_runs))
    logger.info("scheduler.weekly.started", extra=safe_extra({"practices": len(active)}))

    async def _one(practice: Practice) -> PracticeOutcome:
        async with sem:
            try:
                result = await conductor.run(practice.id, practice.org_id, trigger="scheduled")
            except Exception as e:
                logger.exception("scheduler.run_errored", extra=safe_extra({"practice_id": practice.id}))
                return PracticeOutcome(practice_id=practice.id, status="error", error=str(e))
        return PracticeOutcome(
            practice_id=practice.id,
            status=result.status,
            run_id=result.run_id,
            error=result.error,
        )

    outcomes = list(await asyncio.gather(*(_one(p) for p in active)))
    logger.info(
        "scheduler.weekly.finished",
        extra=safe_extra({
            "triggered": len(outcomes),
            "completed": sum(1 for o in outcomes if o.status == "completed"),
        }),
    )
    return outcomes
