# conductor/agents/ghostwriter.py
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from conductor.agents.spi import DraftingProvider
from conductor.db.practices import PracticeStore
from conductor.errors import ProviderError, StateError
from conductor.logging import safe_extra
from conductor.models.state import GhostwriterOutput, PipelineState, Stage
from conductor.models.topics import DraftResult, Topic

logger = logging.getLogger("conductor.agents.ghostwriter")


class DraftCollector:
    """One slot per topic position; concurrent drafts may land in any order."""

    def __init__(self, topics: Sequence[Topic]):
        self._slots: List[Optional[DraftResult]] = [None] * len(topics)

    def record(self, result: DraftResult) -> None:
        if not 0 <= result.position < len(self._slots):
            raise StateError(f"draft position {result.position} out of range")
        if self._slots[result.position] is not None:
            raise StateError(f"draft position {result.position} recorded twice")
        self._slots[result.position] = result

    def results(self) -> List[DraftResult]:
        return [r for r in self._slots if r is not None]

    @property
    def pending(self) -> int:
        return sum(1 for r in self._slots if r is None)


class GhostwriterAgent:
    name = Stage.GHOSTWRITER

    def __init__(
        self,
        practices: PracticeStore,
        drafting: DraftingProvider,
        *,
        concurrency: int = 2,
        max_topics: Optional[int] = None,
    ):
        self._practices = practices
        self._drafting = drafting
        self._concurrency = max(1, concurrency)
        self._max_topics = max_topics

    async def run(self, state: PipelineState) -> GhostwriterOutput:
        topics = list(state.topics or [])
        if self._max_topics is not None:
            topics = topics[: self._max_topics]
        if not topics:
            return GhostwriterOutput(drafts=[])

        practice = self._practices.get(state.practice_id)
        if practice is None:
            raise ProviderError("Client not found")

        collector = DraftCollector(topics)
        sem = asyncio.Semaphore(self._concurrency)

        async def _draft_one(position: int, topic: Topic) -> None:
            async with sem:
                try:
                    drafted = await self._drafting.draft(topic, practice, run_id=state.run_id)
                except Exception as e:
                    # Isolated per topic: siblings keep running.
                    logger.warning(
                        "ghostwriter.topic_failed",
                        exc_info=True,
                        extra=safe_extra({"run_id": state.run_id, "position": position, "keyword": topic.target_keyword}),
                    )
                    collector.record(DraftResult.failed(position, topic, str(e) or type(e).__name__))
                    return
            if not drafted.content_id:
                collector.record(DraftResult.failed(position, topic, "drafting produced no content"))
            else:
                collector.record(DraftResult.ok(
                    position, topic, drafted.content_id,
                    queue_item_id=drafted.queue_item_id,
                    seo_score=drafted.seo_score,
                    compliance_status=drafted.compliance_status,
                ))

        await asyncio.gather(*(_draft_one(i, t) for i, t in enumerate(topics)))

        drafts = collector.results()
        logger.info(
            "ghostwriter.completed",
            extra=safe_extra({
                "run_id": state.run_id,
                "attempted": len(drafts),
                "produced": sum(1 for d in drafts if d.success),
            }),
        )
        return GhostwriterOutput(drafts=drafts)
