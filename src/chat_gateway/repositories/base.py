"""Conversation store interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..domain.models import Conversation, Message, Role


class ConversationStore(ABC):
    """Abstract base class for conversation stores."""

    @abstractmethod
    async def list_conversations(self) -> List[Conversation]:
        """List conversations, most recently active first."""
        pass

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Retrieve a conversation by ID."""
        pass

    @abstractmethod
    async def create_conversation(self, title: str) -> Conversation:
        """Create a new conversation."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and all of its messages.

        Returns whether the conversation existed.
        """
        pass

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> List[Message]:
        """Messages of a conversation in timestamp order, empty if unknown."""
        pass

    @abstractmethod
    async def append_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        provider: Optional[str] = None,
    ) -> Message:
        """Append a message and bump the conversation's `last_message_at`.

        Raises ConversationNotFoundError for an unknown conversation.
        """
        pass
