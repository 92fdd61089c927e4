# conductor/agents/finalize.py
from __future__ import annotations

from conductor.errors import StateError
from conductor.models.state import PipelineState, RunSummary, Stage


class FinalizeAgent:
    name = Stage.FINALIZE

    async def run(self, state: PipelineState) -> RunSummary:
        if state.topics is None:
            raise StateError("finalize reached before scholar produced topics")

        produced = [d for d in state.drafts if d.success]
        failed = [d for d in state.drafts if not d.success]
        return RunSummary(
            topics_found=state.topic_count,
            scholar_keywords=state.topic_count,
            keywords_tracked=state.keywords_tracked,
            gap_keywords=state.gap_keywords,
            drafts_attempted=len(state.drafts),
            drafts_produced=len(produced),
            drafts_failed=len(failed),
            drafts_flagged=sum(1 for d in produced if d.compliance_status == "block"),
            content_piece_ids=[d.content_id for d in produced if d.content_id],
            failed_topics=[
                {"position": d.position, "keyword": d.topic.target_keyword, "error": d.error}
                for d in failed
            ],
            health_score=state.health.health_score if state.health else None,
        )
