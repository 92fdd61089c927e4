from __future__ import annotations

from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ConductorResult(BaseModel):
    """What the facade hands back to callers once a run is terminal."""
    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(alias="runId")
    status: Literal["completed", "failed"]
    content_pieces_generated: int = Field(default=0, alias="contentPiecesGenerated")
    scholar_keywords: int = Field(default=0, alias="scholarKeywords")
    drafts_failed: int = Field(default=0, alias="draftsFailed")
    error: Optional[str] = None

    def to_external(self) -> Dict[str, Any]:
        # drafts_failed stays internal; callers read failures from the run summary.
        return self.model_dump(by_alias=True, exclude={"drafts_failed"})
