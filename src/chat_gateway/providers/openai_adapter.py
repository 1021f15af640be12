"""Chat-completion style adapter (OpenAI)."""

from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import openai

from ..config import Settings
from ..domain.models import Message
from .base import ProviderAdapter


class OpenAIAdapter(ProviderAdapter):
    """Each streamed chunk carries a content fragment in its first choice's delta."""

    provider_id = "openai"
    display_name = "OpenAI"
    models = (
        "gpt-4.1",
        "gpt-4.1-mini",
        "gpt-4.1-nano",
        "gpt-5.1",
        "gpt-5.1-mini",
        "gpt-5.1-nano",
    )
    credential_errors = (openai.AuthenticationError, openai.PermissionDeniedError)
    upstream_errors = (openai.OpenAIError,)

    def __init__(self, api_key: Optional[str], base_url: Optional[str] = None) -> None:
        super().__init__(api_key)
        self.base_url = base_url
        self.client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    @classmethod
    def default_api_key(cls, settings: Settings) -> Optional[str]:
        return settings.openai_api_key

    @classmethod
    def from_request(cls, api_key: Optional[str], settings: Settings) -> "OpenAIAdapter":
        # A caller-supplied key talks to the public endpoint; the system key
        # may be bound to a proxy base URL.
        if api_key:
            return cls(api_key)
        return cls(settings.openai_api_key, base_url=settings.openai_base_url)

    async def aclose(self) -> None:
        await self.client.close()

    def encode_history(self, history: Sequence[Message]) -> List[Dict[str, Any]]:
        return [{"role": m.role.value, "content": m.content} for m in history]

    def extract_fragment(self, event: Any) -> str:
        if not event.choices:
            return ""
        delta = event.choices[0].delta
        return (delta.content if delta is not None else None) or ""

    async def _events(self, model: str, payload: List[Dict[str, Any]]) -> AsyncIterator[Any]:
        stream = await self.client.chat.completions.create(
            model=model,
            messages=payload,
            stream=True,
        )
        async with stream:
            async for chunk in stream:
                yield chunk
