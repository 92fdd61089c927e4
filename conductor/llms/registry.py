# conductor/llms/registry.py
from conductor.config import settings
from .base import LLMProvider
from .openai_provider import OpenAIProvider

def get_provider(model_id: str | None = None, api_key: str | None = None) -> LLMProvider:
    model = model_id or settings.MODEL_ID
    api_key = api_key or settings.OPENAI_API_KEY
    if not model:
        raise ValueError("MODEL_ID is not configured")

    # Accept either "openai:gpt-4o-mini" or plain "gpt-4o-mini"
    if ":" not in model:
        return OpenAIProvider(model_id=model, api_key=api_key)

    prefix, _, actual = model.partition(":")
    if prefix == "openai":
        return OpenAIProvider(model_id=actual or "gpt-4o-mini", api_key=api_key)

    raise ValueError(f"Unknown model provider prefix: {prefix}")
