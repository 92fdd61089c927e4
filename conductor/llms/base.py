from typing import Any, Dict, List, Literal, Protocol, TypedDict


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMProvider(Protocol):
    """Chat model used by the scholar and drafting stages; failures raise ProviderError."""
    model_id: str

    async def chat(self, messages: List[ChatMessage], **kwargs) -> str: ...

    async def chat_json(self, messages: List[ChatMessage], **kwargs) -> Dict[str, Any]:
        """JSON-mode completion, parsed; anything but a JSON object is a ProviderError."""
        ...
