"""Message-stream style adapter (Anthropic)."""

from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import anthropic

from ..config import Settings
from ..domain.models import Message
from .base import ProviderAdapter


class AnthropicAdapter(ProviderAdapter):
    """Only `content_block_delta` events with a `text_delta` carry content.

    Block start/stop and message start/delta/stop events are ignored.
    """

    provider_id = "anthropic"
    display_name = "Anthropic"
    models = ("claude-3-5-sonnet", "claude-3-opus", "claude-3-haiku")
    credential_errors = (anthropic.AuthenticationError, anthropic.PermissionDeniedError)
    upstream_errors = (anthropic.AnthropicError,)

    def __init__(self, api_key: Optional[str], max_tokens: int = 4096) -> None:
        super().__init__(api_key)
        self.max_tokens = max_tokens
        self.client = anthropic.AsyncAnthropic(api_key=api_key)

    @classmethod
    def from_request(cls, api_key: Optional[str], settings: Settings) -> "AnthropicAdapter":
        return cls(api_key, max_tokens=settings.anthropic_max_tokens)

    async def aclose(self) -> None:
        await self.client.close()

    def encode_history(self, history: Sequence[Message]) -> List[Dict[str, Any]]:
        return [
            {"role": m.role.value, "content": [{"type": "text", "text": m.content}]}
            for m in history
        ]

    def extract_fragment(self, event: Any) -> str:
        if getattr(event, "type", None) != "content_block_delta":
            return ""
        delta = event.delta
        if getattr(delta, "type", None) != "text_delta":
            return ""
        return delta.text or ""

    async def _events(self, model: str, payload: List[Dict[str, Any]]) -> AsyncIterator[Any]:
        # must have max-tokens set
        stream = await self.client.messages.create(
            model=model,
            max_tokens=self.max_tokens,
            messages=payload,
            stream=True,
        )
        async with stream:
            async for event in stream:
                yield event
