# conductor/infra/webhook.py
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import orjson

from conductor.config import settings
from conductor.errors import ProviderError


class WebhookNotifier:
    """POSTs `{"event": ..., "payload": ...}` to a single configured URL."""

    def __init__(self, url: str, timeout: Optional[float] = None):
        self.url = url
        self.timeout = timeout or settings.REQUEST_TIMEOUT_S

    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        body = orjson.dumps({"event": event, "payload": payload})
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(self.url, content=body, headers={"content-type": "application/json"})
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise ProviderError(f"webhook delivery of {event} failed: {e}") from e
