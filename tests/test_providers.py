"""Test suite for provider adapters and the provider registry."""

from types import SimpleNamespace
from typing import Any, List, Optional

import anthropic
import httpx
import openai
import pytest
from google.api_core import exceptions as google_exceptions

from chat_gateway.config import Settings
from chat_gateway.domain.exceptions import (
    CredentialError,
    ProviderNotFoundError,
    UpstreamStreamError,
)
from chat_gateway.domain.models import Message, Role
from chat_gateway.providers.anthropic_adapter import AnthropicAdapter
from chat_gateway.providers.gemini_adapter import GeminiAdapter
from chat_gateway.providers.openai_adapter import OpenAIAdapter
from chat_gateway.providers.registry import ProviderRegistry

HISTORY = [
    Message(conversation_id="c1", role=Role.USER, content="hi"),
    Message(conversation_id="c1", role=Role.ASSISTANT, content="hello", provider="m1"),
    Message(conversation_id="c1", role=Role.USER, content="how are you?"),
]


class FakeStream:
    """Vendor stream stand-in: async iterable and async context manager."""

    def __init__(self, events: List[Any], error: Optional[BaseException] = None):
        self.events = events
        self.error = error
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event
        if self.error is not None:
            raise self.error


async def collect(adapter, model="m1", history=HISTORY) -> List[str]:
    return [fragment async for fragment in adapter.stream(model, history)]


def http_error_response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", "https://vendor.test"))


# Chat-completion style


def openai_chunk(content: Optional[str]):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


def fake_openai_client(stream: FakeStream, captured: dict):
    async def create(**kwargs):
        captured.update(kwargs)
        return stream

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


@pytest.mark.asyncio
async def test_openai_concatenates_all_fragments():
    stream = FakeStream([openai_chunk("Hel"), openai_chunk(None), openai_chunk("lo"), openai_chunk("!")])
    captured: dict = {}
    adapter = OpenAIAdapter("sk-test")
    adapter.client = fake_openai_client(stream, captured)

    assert await collect(adapter) == ["Hel", "lo", "!"]
    assert captured["model"] == "m1"
    assert captured["stream"] is True
    assert captured["messages"] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "how are you?"},
    ]
    assert stream.closed


def test_openai_chunk_without_choices_is_empty():
    assert OpenAIAdapter("sk-test").extract_fragment(SimpleNamespace(choices=[])) == ""


@pytest.mark.asyncio
async def test_openai_midstream_failure_is_upstream_error():
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://vendor.test"))
    adapter = OpenAIAdapter("sk-test")
    adapter.client = fake_openai_client(FakeStream([openai_chunk("Hel")], error), {})

    received = []
    with pytest.raises(UpstreamStreamError):
        async for fragment in adapter.stream("m1", HISTORY):
            received.append(fragment)
    assert received == ["Hel"]


@pytest.mark.asyncio
async def test_openai_rejected_key_is_credential_error():
    error = openai.AuthenticationError("bad key", response=http_error_response(401), body=None)
    adapter = OpenAIAdapter("sk-test")
    adapter.client = fake_openai_client(FakeStream([], error), {})

    with pytest.raises(CredentialError):
        await collect(adapter)


def test_openai_explicit_key_wins_over_default():
    settings = Settings(openai_api_key="sk-default", openai_base_url="https://proxy.test/v1")
    explicit = OpenAIAdapter.from_request("sk-user", settings)
    assert explicit.api_key == "sk-user"
    assert explicit.base_url is None

    fallback = OpenAIAdapter.from_request(None, settings)
    assert fallback.api_key == "sk-default"
    assert fallback.base_url == "https://proxy.test/v1"


def test_openai_without_any_key_fails_before_network():
    with pytest.raises(CredentialError):
        OpenAIAdapter.from_request(None, Settings(openai_api_key=None))


# Message-stream style


def block_start():
    return SimpleNamespace(type="content_block_start", index=0, content_block=SimpleNamespace(type="text", text=""))


def text_delta(text: str):
    return SimpleNamespace(type="content_block_delta", index=0, delta=SimpleNamespace(type="text_delta", text=text))


def fake_anthropic_client(stream: FakeStream, captured: dict):
    async def create(**kwargs):
        captured.update(kwargs)
        return stream

    return SimpleNamespace(messages=SimpleNamespace(create=create))


@pytest.mark.asyncio
async def test_anthropic_yields_only_text_deltas():
    events = [
        block_start(),
        text_delta("Hel"),
        text_delta("lo"),
        SimpleNamespace(type="content_block_stop", index=0),
        SimpleNamespace(type="message_stop"),
    ]
    captured: dict = {}
    adapter = AnthropicAdapter("sk-ant-test", max_tokens=512)
    adapter.client = fake_anthropic_client(FakeStream(events), captured)

    assert await collect(adapter) == ["Hel", "lo"]
    assert captured["max_tokens"] == 512
    assert captured["messages"][1] == {
        "role": "assistant",
        "content": [{"type": "text", "text": "hello"}],
    }


def test_anthropic_ignores_non_text_deltas():
    adapter = AnthropicAdapter("sk-ant-test")
    event = SimpleNamespace(
        type="content_block_delta",
        delta=SimpleNamespace(type="input_json_delta", partial_json="{"),
    )
    assert adapter.extract_fragment(event) == ""


def test_anthropic_requires_explicit_key():
    with pytest.raises(CredentialError):
        AnthropicAdapter.from_request(None, Settings(openai_api_key="sk-default"))


@pytest.mark.asyncio
async def test_anthropic_vendor_error_is_upstream_error():
    error = anthropic.InternalServerError("overloaded", response=http_error_response(529), body=None)
    adapter = AnthropicAdapter("sk-ant-test")
    adapter.client = fake_anthropic_client(FakeStream([text_delta("Hel")], error), {})

    with pytest.raises(UpstreamStreamError):
        await collect(adapter)


# Generate-content style


def gemini_chunk(text: str):
    part = SimpleNamespace(text=text)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


def fake_gemini_client(chunks: List[Any], captured: dict, error: Optional[BaseException] = None):
    async def stream_generate_content(**kwargs):
        captured.update(kwargs)
        return FakeStream(chunks, error)

    return SimpleNamespace(stream_generate_content=stream_generate_content)


def test_gemini_renames_assistant_role():
    adapter = GeminiAdapter("gm-test")
    assert adapter.encode_history(HISTORY) == [
        {"role": "user", "parts": [{"text": "hi"}]},
        {"role": "model", "parts": [{"text": "hello"}]},
        {"role": "user", "parts": [{"text": "how are you?"}]},
    ]


def test_gemini_falls_back_to_top_level_text():
    adapter = GeminiAdapter("gm-test")
    assert adapter.extract_fragment(SimpleNamespace(candidates=[], text="top")) == "top"
    assert adapter.extract_fragment(gemini_chunk("part")) == "part"


@pytest.mark.asyncio
async def test_gemini_streams_first_candidate_parts():
    captured: dict = {}
    adapter = GeminiAdapter("gm-test")
    adapter.client = fake_gemini_client([gemini_chunk("Hel"), gemini_chunk("lo")], captured)

    assert await collect(adapter, model="gemini-2.0-flash") == ["Hel", "lo"]
    assert captured["model"] == "models/gemini-2.0-flash"
    assert [content.role for content in captured["contents"]] == ["user", "model", "user"]


@pytest.mark.asyncio
async def test_gemini_permission_denied_is_credential_error():
    adapter = GeminiAdapter("gm-test")
    adapter.client = fake_gemini_client([], {}, google_exceptions.PermissionDenied("bad key"))

    with pytest.raises(CredentialError):
        await collect(adapter)


@pytest.mark.asyncio
async def test_gemini_service_error_is_upstream_error():
    adapter = GeminiAdapter("gm-test")
    adapter.client = fake_gemini_client(
        [gemini_chunk("Hel")], {}, google_exceptions.ServiceUnavailable("down")
    )

    with pytest.raises(UpstreamStreamError):
        await collect(adapter)


# Registry


def test_registry_unknown_provider():
    registry = ProviderRegistry(Settings(openai_api_key=None))
    with pytest.raises(ProviderNotFoundError):
        registry.create_adapter("mystery", "key")


def test_registry_missing_key_fails_at_construction():
    registry = ProviderRegistry(Settings(openai_api_key=None))
    for provider in ("openai", "anthropic", "gemini"):
        with pytest.raises(CredentialError):
            registry.create_adapter(provider, None)


def test_registry_catalog():
    registry = ProviderRegistry(Settings(openai_api_key="sk-default"))
    catalog = {info.id: info for info in registry.catalog()}

    assert set(catalog) == {"openai", "anthropic", "gemini"}
    assert catalog["openai"].has_default_key is True
    assert catalog["openai"].requires_api_key is False
    assert catalog["anthropic"].requires_api_key is True
    assert "gemini-2.0-flash" in catalog["gemini"].models


# Client lifecycle


@pytest.mark.asyncio
@pytest.mark.parametrize("adapter_cls", [OpenAIAdapter, AnthropicAdapter])
async def test_aclose_closes_vendor_client(adapter_cls):
    adapter = adapter_cls("sk-test")
    assert not adapter.client.is_closed()

    await adapter.aclose()

    assert adapter.client.is_closed()


@pytest.mark.asyncio
async def test_gemini_aclose_closes_transport():
    closed = []

    async def close():
        closed.append(True)

    adapter = GeminiAdapter("gm-test")
    adapter.client = SimpleNamespace(transport=SimpleNamespace(close=close))

    await adapter.aclose()
    await adapter.aclose()

    assert closed == [True]
    assert adapter._client is None


@pytest.mark.asyncio
async def test_gemini_aclose_without_client_is_noop():
    adapter = GeminiAdapter("gm-test")
    await adapter.aclose()
    assert adapter._client is None
