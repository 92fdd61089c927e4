from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel

ComplianceStatus = Literal["pass", "warn", "block"]
Severity = Literal["block", "warn"]


class ComplianceDetail(BaseModel):
    rule: str
    severity: Severity
    phrase: str = ""
    reason: str = ""
    suggestion: Optional[str] = None
    disclaimer: Optional[str] = None


class ComplianceResult(BaseModel):
    status: ComplianceStatus = "pass"
    details: List[ComplianceDetail] = []

    @property
    def blocking(self) -> List[ComplianceDetail]:
        return [d for d in self.details if d.severity == "block"]


class DraftedContent(BaseModel):
    """What the drafting provider hands back for one topic."""
    content_id: Optional[str] = None
    queue_item_id: Optional[str] = None
    title: Optional[str] = None
    word_count: int = 0
    seo_score: int = 0
    compliance_status: ComplianceStatus = "pass"
    rewrite_attempts: int = 0
