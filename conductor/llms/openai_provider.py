# conductor/llms/openai_provider.py
from typing import List, Optional, Dict, Any
from .base import LLMProvider, ChatMessage
from openai import AsyncOpenAI, APIError, BadRequestError
import os, json, logging

from conductor.errors import ProviderError

log = logging.getLogger("conductor.llms.openai")

def _stringify_messages(messages: List[ChatMessage]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for m in messages:
        role = m.get("role")
        content = m.get("content")
        if not isinstance(content, str):
            content = json.dumps(content, separators=(",", ":"))
        out.append({"role": role, "content": content})
    return out

class OpenAIProvider(LLMProvider):
    def __init__(self, model_id: str, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        self.model_id = model_id
        self._client = client or AsyncOpenAI(api_key=api_key or os.getenv("OPENAI_API_KEY"))

    async def chat(self, messages: List[ChatMessage], **kwargs) -> str:
        try:
            resp = await self._client.chat.completions.create(
                model=self.model_id,
                messages=_stringify_messages(messages),
                temperature=kwargs.get("temperature", 0.2),
                max_tokens=kwargs.get("max_tokens"),
            )
            return resp.choices[0].message.content or ""
        except BadRequestError as e:
            log.error("OpenAI chat 400: %s", getattr(e, "response", None) and e.response.text)
            raise ProviderError(f"LLM request rejected: {e}") from e
        except APIError as e:
            log.exception("OpenAI chat APIError")
            raise ProviderError(f"LLM request failed: {e}") from e

    async def chat_json(self, messages: List[ChatMessage], **kwargs) -> Dict[str, Any]:
        """Force JSON object output and return it parsed."""
        try:
            resp = await self._client.chat.completions.create(
                model=self.model_id,
                messages=_stringify_messages(messages),
                temperature=kwargs.get("temperature", 0.2),
                response_format={"type": "json_object"},
                max_tokens=kwargs.get("max_tokens"),
            )
        except BadRequestError as e:
            log.error("OpenAI chat_json 400: %s", getattr(e, "response", None) and e.response.text)
            raise ProviderError(f"LLM request rejected: {e}") from e
        except APIError as e:
            log.exception("OpenAI chat_json APIError")
            raise ProviderError(f"LLM request failed: {e}") from e

        content = resp.choices[0].message.content or "{}"
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise ProviderError(f"LLM returned invalid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ProviderError("LLM returned JSON that is not an object")
        return parsed
