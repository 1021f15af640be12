"""Chat gateway: runs one chat turn from validation to persisted reply."""

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import structlog

from ..domain.exceptions import ChatGatewayError, ValidationError
from ..domain.models import ChatRequest, ContentEvent, DoneEvent, ErrorEvent, Role, TurnEvent
from ..metrics import CHAT_FRAGMENTS, CHAT_TURNS
from ..providers.registry import ProviderRegistry
from ..repositories.base import ConversationStore

logger = structlog.get_logger()

REQUIRED_FIELDS = ("conversation_id", "message", "provider", "model")
UNKNOWN_PROVIDER_LABEL = "unknown"


@dataclass(frozen=True)
class ChatTurn:
    """Per-turn configuration, validated and with the user message saved."""

    conversation_id: str
    message: str
    provider: str
    model: str
    api_key: Optional[str] = None


class ChatGateway:
    """Dispatches chat turns to provider adapters and persists the outcome.

    A turn moves through validation, user-message persistence, history load,
    adapter selection and streaming. The assistant reply is written only after
    a clean end of stream; failures and cancellation discard partial text.
    """

    def __init__(self, repository: ConversationStore, providers: ProviderRegistry) -> None:
        self.repository = repository
        self.providers = providers

    @staticmethod
    def validate(request: ChatRequest) -> ChatTurn:
        missing = [name for name in REQUIRED_FIELDS if not getattr(request, name)]
        if missing:
            logger.warning("chat_request_invalid", missing=missing)
            raise ValidationError("Missing required fields: " + ", ".join(missing))
        return ChatTurn(
            conversation_id=request.conversation_id,
            message=request.message,
            provider=request.provider,
            model=request.model,
            api_key=request.api_key or None,
        )

    async def open_turn(self, request: ChatRequest) -> ChatTurn:
        """Validate the request and persist the user's message.

        Raises ValidationError without side effects, or
        ConversationNotFoundError if the conversation does not exist.
        """
        turn = self.validate(request)
        await self.repository.append_message(turn.conversation_id, Role.USER, turn.message)
        logger.info(
            "chat_turn_opened",
            conversation_id=turn.conversation_id,
            provider=turn.provider,
            model=turn.model,
        )
        return turn

    async def stream_turn(self, turn: ChatTurn) -> AsyncIterator[TurnEvent]:
        """Stream an opened turn, ending with exactly one DoneEvent or ErrorEvent."""
        accumulated: List[str] = []
        # Metric label: a registered provider id, never the raw request value.
        label = UNKNOWN_PROVIDER_LABEL
        log = logger.bind(
            conversation_id=turn.conversation_id, provider=turn.provider, model=turn.model
        )
        try:
            history = await self.repository.list_messages(turn.conversation_id)
            label = self.providers.get(turn.provider).provider_id
            adapter = self.providers.create_adapter(turn.provider, turn.api_key)
            try:
                async with aclosing(adapter.stream(turn.model, history)) as fragments:
                    async for fragment in fragments:
                        accumulated.append(fragment)
                        CHAT_FRAGMENTS.labels(provider=label).inc()
                        yield ContentEvent(content=fragment)
            finally:
                await adapter.aclose()

            content = "".join(accumulated)
            await self.repository.append_message(
                turn.conversation_id, Role.ASSISTANT, content, provider=turn.model
            )
        except ChatGatewayError as e:
            log.warning(
                "chat_turn_failed",
                error=e.message,
                code=e.code,
                fragments_discarded=len(accumulated),
            )
            CHAT_TURNS.labels(provider=label, outcome="failed").inc()
            yield ErrorEvent(error=e.message)
            return
        except (asyncio.CancelledError, GeneratorExit):
            log.info("chat_turn_cancelled", fragments_discarded=len(accumulated))
            CHAT_TURNS.labels(provider=label, outcome="cancelled").inc()
            raise

        log.info("chat_turn_completed", fragments=len(accumulated), content_length=len(content))
        CHAT_TURNS.labels(provider=label, outcome="completed").inc()
        yield DoneEvent()

    async def handle_turn(self, request: ChatRequest) -> AsyncIterator[TurnEvent]:
        """Open and stream a turn in one call."""
        turn = await self.open_turn(request)
        async with aclosing(self.stream_turn(turn)) as events:
            async for event in events:
                yield event
