# conductor/pipeline/conductor.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from conductor.db.runs import RunStore
from conductor.errors import ValidationError
from conductor.logging import safe_extra
from conductor.models.results import ConductorResult
from conductor.models.runs import RunCreate
from conductor.models.state import PipelineState, Stage
from conductor.pipeline.engine import PipelineEngine

logger = logging.getLogger("conductor.pipeline.conductor")

TRIGGERS = ("manual", "scheduled")


class Conductor:
    """
    Public entry point: Health Check -> Scholar -> Ghostwriter -> Finalize.

    `run()` creates exactly one run record, drives the engine to a terminal
    stage and returns a ConductorResult that is always `completed` or
    `failed`. Only a failure to create the run record itself propagates
    (PersistenceError), because no run exists to report on.
    """

    def __init__(self, store: RunStore, engine: PipelineEngine, *, graph_id: str = "conductor-v1"):
        self._store = store
        self._engine = engine
        self._graph_id = graph_id

    async def run(
        self,
        practice_id: str,
        organization_id: str,
        *,
        trigger: str = "manual",
        config: Optional[Dict[str, Any]] = None,
    ) -> ConductorResult:
        if not practice_id or not str(practice_id).strip():
            raise ValidationError("practice_id is required")
        if not organization_id or not str(organization_id).strip():
            raise ValidationError("organization_id is required")
        if trigger not in TRIGGERS:
            raise ValidationError(f"trigger must be one of {', '.join(TRIGGERS)}")

        run = self._store.create(RunCreate(
            organization_id=organization_id,
            practice_id=practice_id,
            graph_id=self._graph_id,
            trigger=trigger,
            config=config or {},
        ))
        logger.info(
            "conductor.run.created",
            extra=safe_extra({"run_id": run.run_id, "practice_id": practice_id, "trigger": trigger}),
        )

        state = PipelineState(practice_id=practice_id, organization_id=organization_id, run_id=run.run_id)
        final = await self._engine.execute(state)
        return to_result(final)


def to_result(state: PipelineState) -> ConductorResult:
    completed = state.stage is Stage.COMPLETED
    return ConductorResult(
        run_id=state.run_id,
        status="completed" if completed else "failed",
        content_pieces_generated=state.drafts_produced,
        scholar_keywords=state.topic_count,
        drafts_failed=sum(1 for d in state.drafts if not d.success),
        error=None if completed else (state.error or "run did not complete"),
    )
