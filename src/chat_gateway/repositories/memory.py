"""In-memory conversation store."""

import asyncio
from datetime import datetime
from typing import Callable, Dict, List, Optional

import pydantic
import structlog

from ..domain.exceptions import ConversationNotFoundError, StorageError
from ..domain.models import Conversation, Message, Role, utcnow
from .base import ConversationStore

logger = structlog.get_logger()


class InMemoryConversationStore(ConversationStore):
    """Async-safe in-memory store.

    A single lock guards both maps, so a message insertion and the matching
    `last_message_at` update are never observed apart. Per-conversation lists
    are kept in insertion order and sorted stably by timestamp on read, which
    breaks timestamp ties by insertion order.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        """Initialize empty storage with an injectable clock."""
        self._clock = clock
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._lock = asyncio.Lock()
        logger.info("conversation_store_initialized")

    async def list_conversations(self) -> List[Conversation]:
        """List conversations, most recently active first."""
        async with self._lock:
            return sorted(
                self._conversations.values(),
                key=lambda c: c.last_message_at,
                reverse=True,
            )

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Retrieve a conversation by ID."""
        async with self._lock:
            return self._conversations.get(conversation_id)

    async def create_conversation(self, title: str) -> Conversation:
        """Create a new conversation."""
        async with self._lock:
            conversation = Conversation(title=title, last_message_at=self._clock())
            self._conversations[conversation.id] = conversation
            self._messages[conversation.id] = []
        logger.info("conversation_created", conversation_id=conversation.id)
        return conversation

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation together with its messages."""
        async with self._lock:
            existed = self._conversations.pop(conversation_id, None) is not None
            removed = self._messages.pop(conversation_id, [])
        if existed:
            logger.info(
                "conversation_deleted",
                conversation_id=conversation_id,
                messages_removed=len(removed),
            )
        else:
            logger.warning("conversation_not_found", conversation_id=conversation_id)
        return existed

    async def list_messages(self, conversation_id: str) -> List[Message]:
        """Get messages for a conversation in timestamp order."""
        async with self._lock:
            messages = list(self._messages.get(conversation_id, []))
        return sorted(messages, key=lambda m: m.timestamp)

    async def append_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        provider: Optional[str] = None,
    ) -> Message:
        """Add a message to a conversation and bump its activity time."""
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                logger.error(
                    "conversation_not_found_for_message",
                    conversation_id=conversation_id,
                )
                raise ConversationNotFoundError(conversation_id)

            now = self._clock()
            try:
                message = Message(
                    conversation_id=conversation_id,
                    role=role,
                    content=content,
                    timestamp=now,
                    provider=provider,
                )
            except pydantic.ValidationError as e:
                logger.error(
                    "message_rejected",
                    conversation_id=conversation_id,
                    message_role=role.value,
                    error=str(e),
                )
                raise StorageError(f"Failed to store {role.value} message") from e
            self._messages[conversation_id].append(message)
            self._conversations[conversation_id] = conversation.model_copy(
                update={"last_message_at": now}
            )

        logger.info(
            "message_added",
            conversation_id=conversation_id,
            message_role=role.value,
            content_length=len(content),
        )
        return message
