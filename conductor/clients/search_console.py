# conductor/clients/search_console.py
from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional, Protocol
from urllib.parse import quote

import httpx

from conductor.config import settings
from conductor.errors import ProviderError
from conductor.models.practice import Practice, SearchQuery
from conductor.clients.google_tokens import TokenRefresher


class SearchConsoleProvider(Protocol):
    async def top_queries(self, practice: Practice, *, days: int = 90, row_limit: int = 500) -> List[SearchQuery]: ...


class SearchConsoleClient:
    def __init__(self, base_url: Optional[str] = None, tokens: Optional[TokenRefresher] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url or settings.SEARCH_CONSOLE_URL).rstrip("/")
        self.tokens = tokens
        self.timeout = timeout or settings.REQUEST_TIMEOUT_S

    async def top_queries(self, practice: Practice, *, days: int = 90, row_limit: int = 500) -> List[SearchQuery]:
        stored = await self.tokens.refresh_if_needed(practice) if self.tokens else practice.google_tokens
        token = (stored or {}).get("access_token")
        if not token:
            raise ProviderError(f"No Google access token for practice {practice.id}")

        end = date.today()
        start = end - timedelta(days=days)
        body = {
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "dimensions": ["query"],
            "rowLimit": row_limit,
        }
        url = f"{self.base_url}/sites/{quote(practice.site_url, safe='')}/searchAnalytics/query"
        try:
            async with httpx.AsyncClient(timeout=self.timeout,
                                         headers={"Authorization": f"Bearer {token}"}) as client:
                r = await client.post(url, json=body)
                r.raise_for_status()
                payload = r.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"search console query failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"search console returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ProviderError("search console returned an unexpected payload")
        rows = payload.get("rows") or []

        out: List[SearchQuery] = []
        for row in rows:
            keys = row.get("keys") or []
            if not keys:
                continue
            out.append(SearchQuery(
                query=str(keys[0]),
                clicks=int(row.get("clicks") or 0),
                impressions=int(row.get("impressions") or 0),
                position=float(row.get("position") or 0.0),
            ))
        return out
