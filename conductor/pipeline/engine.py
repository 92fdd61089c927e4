# conductor/pipeline/engine.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Sequence

from pydantic import BaseModel

from conductor.agents.spi import StageHandler
from conductor.db.runs import RunStore
from conductor.errors import ConductorError, PersistenceError, StateError
from conductor.infra.notify import Notifier
from conductor.logging import safe_extra
from conductor.models.state import (
    GhostwriterOutput,
    HealthReport,
    PipelineState,
    RunSummary,
    ScholarOutput,
    Stage,
    TRANSITIONS,
)

logger = logging.getLogger("conductor.pipeline.engine")

# Stages that own a handler, in execution order.
HANDLED_STAGES = (Stage.HEALTH_CHECK, Stage.SCHOLAR, Stage.GHOSTWRITER, Stage.FINALIZE)


class PipelineEngine:
    """
    Drives one PipelineState from INIT to COMPLETED or FAILED.

    Stages run strictly in TRANSITIONS order. After every stage the state is
    checkpointed to the run store; a stage failure is checkpointed at the
    failing stage, the run is failed, and nothing is retried.
    """

    def __init__(self, store: RunStore, handlers: Sequence[StageHandler], notifier: Optional[Notifier] = None):
        self._store = store
        self._handlers: Dict[Stage, StageHandler] = {h.name: h for h in handlers}
        missing = [s.value for s in HANDLED_STAGES if s not in self._handlers]
        if missing:
            raise ValueError(f"missing stage handlers: {', '.join(missing)}")
        self._notifier = notifier

    async def execute(self, state: PipelineState) -> PipelineState:
        if state.stage is not Stage.INIT:
            raise StateError(f"run {state.run_id} must start at init, not {state.stage.value}")

        await self._emit("started", state)
        try:
            self._checkpoint(state)
        except PersistenceError as e:
            return await self._fail(state, e, checkpoint=False)

        while not state.stage.is_terminal:
            target = TRANSITIONS[state.stage]
            if target is Stage.COMPLETED:
                await self._complete(state)
                break

            state.advance(target)
            t0 = time.perf_counter()
            try:
                output = await self._handlers[target].run(state)
                self._merge(state, output)
                self._checkpoint(state)
            except ConductorError as e:
                await self._fail(state, e)
                break
            except Exception as e:
                logger.exception("conductor.stage.crashed", extra=safe_extra({"run_id": state.run_id, "stage": target.value}))
                await self._fail(state, e)
                break

            logger.info(
                "conductor.stage.completed",
                extra=safe_extra({
                    "run_id": state.run_id,
                    "stage": target.value,
                    "duration_s": round(time.perf_counter() - t0, 3),
                }),
            )
            await self._emit("stage.completed", state)

        return state

    # ---- transitions ------------------------------------------------------
    def _merge(self, state: PipelineState, output: BaseModel) -> None:
        stage = state.stage
        if stage is Stage.HEALTH_CHECK and isinstance(output, HealthReport):
            state.health = output
        elif stage is Stage.SCHOLAR and isinstance(output, ScholarOutput):
            state.topics = list(output.topics)
            state.topic_count = len(output.topics)
            state.keywords_tracked = output.keywords_tracked
            state.gap_keywords = output.gap_keywords
        elif stage is Stage.GHOSTWRITER and isinstance(output, GhostwriterOutput):
            if len(output.drafts) > len(state.topics or []):
                raise StateError("ghostwriter returned more drafts than topics")
            state.drafts = list(output.drafts)
        elif stage is Stage.FINALIZE and isinstance(output, RunSummary):
            state.summary = output
        else:
            raise StateError(f"{stage.value} handler returned {type(output).__name__}")

    def _checkpoint(self, state: PipelineState) -> None:
        self._store.checkpoint(state.run_id, state.snapshot(), state.stage.value)

    async def _complete(self, state: PipelineState) -> None:
        summary = state.summary or RunSummary()
        try:
            written = self._store.complete(state.run_id, summary.model_dump(mode="json"))
        except PersistenceError as e:
            await self._fail(state, e, checkpoint=False)
            return
        if not written:
            await self._adopt_stored_outcome(state)
            return
        state.advance(Stage.COMPLETED)
        logger.info(
            "conductor.completed",
            extra=safe_extra({
                "run_id": state.run_id,
                "topics": state.topic_count,
                "drafts_produced": state.drafts_produced,
            }),
        )
        await self._emit("completed", state)

    async def _adopt_stored_outcome(self, state: PipelineState) -> None:
        """Another writer (e.g. the stale-run reaper) already closed the run; report what it recorded."""
        try:
            stored = self._store.get(state.run_id)
        except PersistenceError:
            logger.exception("conductor.reload_failed", extra=safe_extra({"run_id": state.run_id}))
            stored = None

        if stored is not None and stored.status == "completed":
            state.advance(Stage.COMPLETED)
            await self._emit("completed", state)
            return

        failed_at = state.stage
        state.error = (stored.error if stored is not None else None) or "run was closed before it could complete"
        state.advance(Stage.FAILED)
        logger.warning(
            "conductor.closed_elsewhere",
            extra=safe_extra({"run_id": state.run_id, "stage": failed_at.value, "error": state.error}),
        )
        await self._emit("failed", state, stage=failed_at)

    async def _fail(self, state: PipelineState, err: Exception, *, checkpoint: bool = True) -> PipelineState:
        failed_at = state.stage
        state.error = str(err) or type(err).__name__
        if checkpoint:
            try:
                self._checkpoint(state)
            except PersistenceError:
                logger.exception("conductor.checkpoint_failed", extra=safe_extra({"run_id": state.run_id}))
        try:
            self._store.fail(state.run_id, state.error)
        except PersistenceError:
            logger.exception("conductor.fail_write_failed", extra=safe_extra({"run_id": state.run_id}))
        if not state.stage.is_terminal:
            state.advance(Stage.FAILED)

        logger.warning(
            "conductor.stage.failed",
            extra=safe_extra({"run_id": state.run_id, "stage": failed_at.value, "error": state.error}),
        )
        await self._emit("stage.failed", state, stage=failed_at)
        await self._emit("failed", state, stage=failed_at)
        return state

    # ---- notifications ----------------------------------------------------
    async def _emit(self, event: str, state: PipelineState, stage: Optional[Stage] = None) -> None:
        if self._notifier is None:
            return
        payload: Dict[str, Any] = {
            "run_id": state.run_id,
            "practice_id": state.practice_id,
            "organization_id": state.organization_id,
            "stage": (stage or state.stage).value,
            "error": state.error,
        }
        if state.summary is not None:
            payload["summary"] = state.summary.model_dump(mode="json")
        try:
            await self._notifier.publish(event, payload)
        except Exception:
            logger.exception("conductor.notify_failed", extra=safe_extra({"run_id": state.run_id, "event": event}))
