from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

AccountHealth = Literal["active", "at_risk", "churned", "paused"]


class Competitor(BaseModel):
    domain: str
    name: Optional[str] = None


class PracticeProfile(BaseModel):
    model_config = ConfigDict(extra="allow")

    practice_name: Optional[str] = None
    services: List[str] = []
    city: Optional[str] = None
    state: Optional[str] = None
    doctors: List[str] = []


class Practice(BaseModel):
    """Read-only view of a client practice as stored by the onboarding flow."""
    model_config = ConfigDict(extra="ignore")

    id: str
    org_id: str
    name: str
    domain: str
    vertical: str = "dental"
    account_health: AccountHealth = "active"
    health_score: int = 0
    practice_profile: PracticeProfile = Field(default_factory=PracticeProfile)
    competitors: List[Competitor] = []
    google_tokens: Dict[str, Any] = Field(default_factory=dict)

    @property
    def site_url(self) -> str:
        return f"sc-domain:{self.domain}"


# ─────────────────────────────────────────────────────────────
# Research provider payloads
# ─────────────────────────────────────────────────────────────
class KeywordData(BaseModel):
    keyword: str
    search_volume: int = 0
    difficulty: int = 0
    source: str = "research"


class SearchQuery(BaseModel):
    query: str
    clicks: int = 0
    impressions: int = 0
    position: float = 0.0
