from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, model_validator


class Topic(BaseModel):
    """A content subject proposed by the scholar stage."""
    model_config = ConfigDict(frozen=True)

    title: str
    target_keyword: str
    supporting_keywords: List[str] = []
    priority: float = 0.0
    angle: str = ""
    estimated_volume: int = 0


class DraftResult(BaseModel):
    """Outcome of drafting one topic; `position` is the topic's index."""

    position: int
    topic: Topic
    success: bool
    content_id: Optional[str] = None
    queue_item_id: Optional[str] = None
    seo_score: Optional[int] = None
    compliance_status: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _consistent(self) -> "DraftResult":
        if self.success and (not self.content_id or self.error):
            raise ValueError("successful draft needs a content_id and no error")
        if not self.success and not self.error:
            raise ValueError("failed draft needs an error message")
        return self

    @classmethod
    def ok(cls, position: int, topic: Topic, content_id: str, **review) -> "DraftResult":
        return cls(position=position, topic=topic, success=True, content_id=content_id, **review)

    @classmethod
    def failed(cls, position: int, topic: Topic, error: str) -> "DraftResult":
        return cls(position=position, topic=topic, success=False, error=error or "unknown drafting error")
