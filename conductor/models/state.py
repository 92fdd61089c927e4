from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from conductor.errors import StateError
from conductor.models.topics import DraftResult, Topic


class Stage(str, Enum):
    INIT = "init"
    HEALTH_CHECK = "health_check"
    SCHOLAR = "scholar"
    GHOSTWRITER = "ghostwriter"
    FINALIZE = "finalize"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETED, Stage.FAILED)


# Happy-path successor of every non-terminal stage. FAILED is reachable from
# any non-terminal stage and is handled separately by `advance`.
TRANSITIONS: Dict[Stage, Stage] = {
    Stage.INIT: Stage.HEALTH_CHECK,
    Stage.HEALTH_CHECK: Stage.SCHOLAR,
    Stage.SCHOLAR: Stage.GHOSTWRITER,
    Stage.GHOSTWRITER: Stage.FINALIZE,
    Stage.FINALIZE: Stage.COMPLETED,
}

STAGE_ORDER: List[Stage] = [
    Stage.INIT,
    Stage.HEALTH_CHECK,
    Stage.SCHOLAR,
    Stage.GHOSTWRITER,
    Stage.FINALIZE,
    Stage.COMPLETED,
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────
# Stage outputs
# ─────────────────────────────────────────────────────────────
class HealthReport(BaseModel):
    account_health: str
    health_score: int = 0
    credentials_checked: bool = False
    checked_at: datetime = Field(default_factory=_utcnow)


class ScholarOutput(BaseModel):
    topics: List[Topic] = []
    keywords_tracked: int = 0
    gap_keywords: int = 0


class GhostwriterOutput(BaseModel):
    drafts: List[DraftResult] = []


class RunSummary(BaseModel):
    topics_found: int = 0
    scholar_keywords: int = 0
    keywords_tracked: int = 0
    gap_keywords: int = 0
    drafts_attempted: int = 0
    drafts_produced: int = 0
    drafts_failed: int = 0
    drafts_flagged: int = 0     # stored, but compliance still blocks them
    content_piece_ids: List[str] = []
    failed_topics: List[Dict[str, Any]] = []
    health_score: Optional[int] = None


# ─────────────────────────────────────────────────────────────
# Working state threaded through the engine
# ─────────────────────────────────────────────────────────────
class PipelineState(BaseModel):
    practice_id: str
    organization_id: str
    run_id: str
    stage: Stage = Stage.INIT

    health: Optional[HealthReport] = None
    topic_count: int = 0
    topics: Optional[List[Topic]] = None
    keywords_tracked: int = 0
    gap_keywords: int = 0
    drafts: List[DraftResult] = []
    summary: Optional[RunSummary] = None
    error: Optional[str] = None

    def advance(self, target: Stage) -> None:
        """Move to `target`, refusing anything but the next stage or FAILED."""
        if self.stage.is_terminal:
            raise StateError(f"run {self.run_id} is already {self.stage.value}")
        if target is Stage.FAILED:
            self.stage = target
            return
        expected = TRANSITIONS[self.stage]
        if target is not expected:
            raise StateError(
                f"invalid transition {self.stage.value} -> {target.value} (expected {expected.value})"
            )
        self.stage = target

    def snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @property
    def drafts_produced(self) -> int:
        return sum(1 for d in self.drafts if d.success)
