# conductor/clients/keyword_research.py
from __future__ import annotations

import uuid
from typing import Any, List, Optional, Protocol

import httpx

from conductor.config import settings
from conductor.errors import ProviderError
from conductor.models.practice import KeywordData


class KeywordProvider(Protocol):
    async def keyword_research(self, seeds: List[str]) -> List[KeywordData]: ...
    async def competitor_keywords(self, domain: str) -> List[KeywordData]: ...


def _headers(api_key: Optional[str]) -> dict:
    base = {"x-request-id": str(uuid.uuid4())}
    if api_key:
        base["Authorization"] = f"Token {api_key}"
    return base


def _rows(payload: Any) -> List[dict]:
    # Accept a bare list or the usual {"items"|"keywords"|"data": [...]} envelopes.
    if isinstance(payload, list):
        return [r for r in payload if isinstance(r, dict)]
    if isinstance(payload, dict):
        for key in ("items", "keywords", "data"):
            if isinstance(payload.get(key), list):
                return [r for r in payload[key] if isinstance(r, dict)]
    return []


def _to_keyword(row: dict, source: str) -> Optional[KeywordData]:
    kw = (row.get("keyword") or row.get("query") or "").strip()
    if not kw:
        return None
    return KeywordData(
        keyword=kw,
        search_volume=int(row.get("search_volume") or row.get("volume") or 0),
        difficulty=int(row.get("difficulty") or row.get("keyword_difficulty") or 0),
        source=source,
    )


class KeywordResearchClient:
    """Thin httpx client for the keyword research API (SE Ranking compatible)."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url or settings.KEYWORD_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.KEYWORD_API_KEY
        self.timeout = timeout or settings.REQUEST_TIMEOUT_S

    async def keyword_research(self, seeds: List[str]) -> List[KeywordData]:
        if not seeds:
            return []
        payload = await self._request("POST", "/keywords/research", json={"keywords": seeds})
        return [k for k in (_to_keyword(r, "research") for r in _rows(payload)) if k]

    async def competitor_keywords(self, domain: str) -> List[KeywordData]:
        payload = await self._request("GET", "/domain/keywords", params={"domain": domain})
        return [k for k in (_to_keyword(r, "gap") for r in _rows(payload)) if k]

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers=_headers(self.api_key)) as client:
                r = await client.request(method, f"{self.base_url}{path}", **kwargs)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"keyword research {method} {path} failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"keyword research {path} returned invalid JSON: {e}") from e
