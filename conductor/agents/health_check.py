# conductor/agents/health_check.py
from __future__ import annotations

import logging
from typing import Optional

from conductor.clients.google_tokens import TokenRefresher
from conductor.db.practices import PracticeStore
from conductor.errors import ProviderError
from conductor.logging import safe_extra
from conductor.models.state import HealthReport, PipelineState, Stage

logger = logging.getLogger("conductor.agents.health_check")


class HealthCheckAgent:
    """
    Gate for the whole run: the practice must exist, be in `active` account
    health, and (when a refresher is configured) hold usable Google tokens.
    """
    name = Stage.HEALTH_CHECK

    def __init__(self, practices: PracticeStore, tokens: Optional[TokenRefresher] = None):
        self._practices = practices
        self._tokens = tokens

    async def run(self, state: PipelineState) -> HealthReport:
        practice = self._practices.get(state.practice_id)
        if practice is None:
            raise ProviderError("Client not found")

        if practice.account_health != "active":
            raise ProviderError(
                f"Client account health is {practice.account_health}. Skipping pipeline."
            )

        if self._tokens is not None:
            try:
                await self._tokens.refresh_if_needed(practice)
            except Exception as e:
                logger.warning(
                    "health_check.tokens_invalid",
                    extra=safe_extra({"practice_id": practice.id, "error": str(e) or type(e).__name__}),
                )
                raise ProviderError("Google tokens expired or invalid.") from e

        return HealthReport(
            account_health=practice.account_health,
            health_score=practice.health_score,
            credentials_checked=self._tokens is not None,
        )
