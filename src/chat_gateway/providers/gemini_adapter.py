"""Generate-content style adapter (Google Gemini)."""

from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from google.ai import generativelanguage as glm
from google.api_core import exceptions
from google.api_core.client_options import ClientOptions

from ..domain.models import Message, Role
from .base import ProviderAdapter


class GeminiAdapter(ProviderAdapter):
    """Content is the first part of the first candidate of each chunk.

    The assistant role is called "model" on this API.
    """

    provider_id = "gemini"
    display_name = "Gemini"
    models = ("gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash")
    credential_errors = (exceptions.Unauthenticated, exceptions.PermissionDenied)
    upstream_errors = (exceptions.GoogleAPIError,)

    def __init__(self, api_key: Optional[str]) -> None:
        super().__init__(api_key)
        self._client: Optional[glm.GenerativeServiceAsyncClient] = None

    @property
    def client(self) -> glm.GenerativeServiceAsyncClient:
        # The async transport binds to the running loop, so build it on first use.
        if self._client is None:
            self._client = glm.GenerativeServiceAsyncClient(
                client_options=ClientOptions(api_key=self.api_key)
            )
        return self._client

    @client.setter
    def client(self, value: glm.GenerativeServiceAsyncClient) -> None:
        self._client = value

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.transport.close()
            self._client = None

    def encode_history(self, history: Sequence[Message]) -> List[Dict[str, Any]]:
        return [
            {
                "role": "model" if m.role is Role.ASSISTANT else "user",
                "parts": [{"text": m.content}],
            }
            for m in history
        ]

    def extract_fragment(self, event: Any) -> str:
        candidates = getattr(event, "candidates", None)
        if candidates:
            content = getattr(candidates[0], "content", None)
            parts = getattr(content, "parts", None)
            if parts:
                return getattr(parts[0], "text", "") or ""
        return getattr(event, "text", "") or ""

    @staticmethod
    def _model_name(model: str) -> str:
        return model if model.startswith("models/") else f"models/{model}"

    async def _events(self, model: str, payload: List[Dict[str, Any]]) -> AsyncIterator[Any]:
        stream = await self.client.stream_generate_content(
            model=self._model_name(model),
            contents=[glm.Content(item) for item in payload],
        )
        async for chunk in stream:
            yield chunk
