"""Server-sent events encoding for chat turns."""

import json
from contextlib import aclosing
from typing import AsyncIterator

import structlog
from sse_starlette import ServerSentEvent

from ..domain.models import ErrorEvent, TurnEvent

logger = structlog.get_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_event(event: TurnEvent) -> bytes:
    """Encode one event as a `data:` frame terminated by a blank line."""
    data = json.dumps(event.payload(), separators=(",", ":"), ensure_ascii=False)
    return ServerSentEvent(data=data, sep="\n").encode()


async def encode_stream(events: AsyncIterator[TurnEvent]) -> AsyncIterator[bytes]:
    """Encode a turn's events, guaranteeing exactly one terminal event.

    Events after the first terminal one are dropped. If the source ends
    without a terminal event or fails unexpectedly, an error event closes
    the stream.
    """
    async with aclosing(events) as source:
        try:
            async for event in source:
                yield encode_event(event)
                if event.terminal:
                    return
        except Exception as e:
            logger.exception("event_stream_failed", error=str(e))
            yield encode_event(ErrorEvent(error="Internal error while streaming the reply"))
            return

    logger.error("event_stream_ended_without_terminal_event")
    yield encode_event(ErrorEvent(error="Stream ended unexpectedly"))
