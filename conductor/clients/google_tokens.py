# conductor/clients/google_tokens.py
from __future__ import annotations

import time
from typing import Any, Dict, Optional, Protocol

import httpx

from conductor.config import settings
from conductor.errors import ProviderError
from conductor.models.practice import Practice

# Refresh when the access token expires within this window.
EXPIRY_BUFFER_MS = 5 * 60 * 1000


class TokenRefresher(Protocol):
    async def refresh_if_needed(self, practice: Practice) -> Dict[str, Any]: ...


class GoogleTokenRefresher:
    """Verifies a practice's stored OAuth tokens and refreshes expired ones."""

    def __init__(self, token_url: Optional[str] = None, client_id: Optional[str] = None,
                 client_secret: Optional[str] = None, timeout: Optional[float] = None):
        self.token_url = token_url or settings.GOOGLE_TOKEN_URL
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.GOOGLE_CLIENT_SECRET
        self.timeout = timeout or settings.REQUEST_TIMEOUT_S

    async def refresh_if_needed(self, practice: Practice) -> Dict[str, Any]:
        tokens = dict(practice.google_tokens or {})
        if not tokens.get("refresh_token") and not tokens.get("access_token"):
            raise ProviderError(f"No Google tokens stored for practice {practice.id}")

        expiry = int(tokens.get("expiry_date") or 0)
        if expiry > int(time.time() * 1000) + EXPIRY_BUFFER_MS:
            return tokens

        if not tokens.get("refresh_token"):
            raise ProviderError("Google tokens expired or invalid.")

        form = {
            "client_id": self.client_id or "",
            "client_secret": self.client_secret or "",
            "refresh_token": tokens["refresh_token"],
            "grant_type": "refresh_token",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(self.token_url, data=form)
                r.raise_for_status()
                refreshed = r.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"Google token refresh failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Google token refresh returned invalid JSON: {e}") from e
        if not isinstance(refreshed, dict):
            raise ProviderError("Google token refresh returned an unexpected payload")

        tokens["access_token"] = refreshed.get("access_token")
        tokens["expiry_date"] = int(time.time() * 1000) + int(refreshed.get("expires_in") or 0) * 1000
        return tokens
