"""Shared fixtures: a fresh store and a registry of scripted adapters."""

import asyncio
from typing import Any, AsyncIterator, ClassVar, Dict, List, Optional, Sequence, Tuple

import pytest
from httpx import ASGITransport, AsyncClient

from chat_gateway.api.app import app, get_providers, get_repository
from chat_gateway.config import Settings
from chat_gateway.domain.models import Message
from chat_gateway.providers.base import ProviderAdapter
from chat_gateway.providers.registry import ProviderRegistry
from chat_gateway.repositories.memory import InMemoryConversationStore


class ScriptedAdapter(ProviderAdapter):
    """Adapter replaying a fixed list of fragments, optionally failing at the end."""

    provider_id = "A"
    display_name = "Scripted"
    fragments: ClassVar[Tuple[str, ...]] = ("Hel", "lo")
    failure: ClassVar[Optional[BaseException]] = None
    upstream_errors = (RuntimeError,)
    calls: ClassVar[List[Dict[str, Any]]] = []
    instances: ClassVar[List["ScriptedAdapter"]] = []

    def __init__(self, api_key: Optional[str]) -> None:
        super().__init__(api_key)
        self.closed = False
        self.instances.append(self)

    async def aclose(self) -> None:
        self.closed = True

    @classmethod
    def default_api_key(cls, settings: Settings) -> Optional[str]:
        return "scripted-default-key"

    def encode_history(self, history: Sequence[Message]) -> List[Dict[str, Any]]:
        return [{"role": m.role.value, "content": m.content} for m in history]

    def extract_fragment(self, event: Any) -> str:
        return event

    async def _events(self, model: str, payload: List[Dict[str, Any]]) -> AsyncIterator[Any]:
        self.calls.append({"model": model, "payload": payload, "api_key": self.api_key})
        for fragment in self.fragments:
            await asyncio.sleep(0)
            yield fragment
        if self.failure is not None:
            raise self.failure


class KeyRequiredAdapter(ScriptedAdapter):
    provider_id = "keyed"

    @classmethod
    def default_api_key(cls, settings: Settings) -> Optional[str]:
        return None


class HangingAdapter(ScriptedAdapter):
    """Yields one fragment then waits until cancelled."""

    provider_id = "hanging"
    closed: ClassVar[asyncio.Event]

    async def _events(self, model: str, payload: List[Dict[str, Any]]) -> AsyncIterator[Any]:
        try:
            yield "partial"
            await asyncio.Event().wait()
        finally:
            HangingAdapter.closed.set()


def scripted(provider_id: str, fragments: Sequence[str], failure: Optional[BaseException] = None):
    """Build a ScriptedAdapter subclass with its own script."""
    return type(
        f"Scripted_{provider_id}",
        (ScriptedAdapter,),
        {
            "provider_id": provider_id,
            "fragments": tuple(fragments),
            "failure": failure,
            "calls": [],
            "instances": [],
        },
    )


@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key=None, openai_base_url=None)


@pytest.fixture
def registry(settings) -> ProviderRegistry:
    HangingAdapter.closed = asyncio.Event()
    HangingAdapter.instances = []
    return ProviderRegistry(
        settings,
        adapters=[
            scripted("A", ["Hel", "lo"]),
            scripted("failing", ["par", "tial"], RuntimeError("boom")),
            scripted("silent", []),
            KeyRequiredAdapter,
            HangingAdapter,
        ],
    )


@pytest.fixture
def api(store, registry):
    """Point the app at the fixture store and registry."""
    app.dependency_overrides[get_repository] = lambda: store
    app.dependency_overrides[get_providers] = lambda: registry
    yield app
    app.dependency_overrides.clear()


def make_client(application) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=application), base_url="http://test")
