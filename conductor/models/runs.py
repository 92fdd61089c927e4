from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

RunStatus = Literal["running", "completed", "failed"]
RunTrigger = Literal["manual", "scheduled"]
TERMINAL_STATUSES = ("completed", "failed")

# ─────────────────────────────────────────────────────────────
# Run persistence shape
# ─────────────────────────────────────────────────────────────
class RunCreate(BaseModel):
    organization_id: str
    practice_id: str
    agent: Literal["conductor"] = "conductor"
    graph_id: str = "conductor-v1"
    trigger: RunTrigger = "manual"
    config: Dict[str, Any] = Field(default_factory=dict)


class Run(RunCreate):
    run_id: str
    status: RunStatus = "running"
    result: Dict[str, Any] = Field(default_factory=dict)   # populated on completion only
    error: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Checkpoint + audit trail
    checkpoint: Dict[str, Any] = Field(default_factory=dict)
    stage: str = "init"          # last checkpointed stage marker
    stages: List[str] = []       # every marker ever checkpointed, in order

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
