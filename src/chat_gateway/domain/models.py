"""Domain models for the chat gateway."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_CONVERSATION_TITLE = "New Conversation"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Conversation(CamelModel):
    """Conversation model."""

    id: str = Field(default_factory=new_id)
    title: str
    last_message_at: datetime = Field(default_factory=utcnow)


class Message(CamelModel):
    """Message model. `provider` holds the model identifier of assistant replies."""

    id: str = Field(default_factory=new_id)
    conversation_id: str
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    provider: Optional[str] = None

    @model_validator(mode="after")
    def _provider_only_on_assistant(self) -> "Message":
        if self.role is Role.ASSISTANT and not self.provider:
            raise ValueError("assistant messages must name the model that produced them")
        if self.role is Role.USER and self.provider is not None:
            raise ValueError("user messages cannot carry a provider")
        return self


class ConversationCreate(CamelModel):
    """Request body for creating a conversation."""

    title: str = DEFAULT_CONVERSATION_TITLE


class ChatRequest(CamelModel):
    """Request body for a chat turn.

    Every field is optional at the schema level so that missing fields are
    reported by the gateway as a 400 rather than a schema error.
    """

    conversation_id: Optional[str] = None
    message: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None


class ProviderInfo(CamelModel):
    """Catalog entry for a registered provider."""

    id: str
    name: str
    models: List[str]
    requires_api_key: bool
    has_default_key: bool


class TurnEvent(BaseModel):
    """One event of a chat turn as seen by the caller."""

    terminal: bool = False

    def payload(self) -> Dict[str, Any]:
        raise NotImplementedError


class ContentEvent(TurnEvent):
    content: str

    def payload(self) -> Dict[str, Any]:
        return {"content": self.content}


class DoneEvent(TurnEvent):
    terminal: bool = True

    def payload(self) -> Dict[str, Any]:
        return {"done": True}


class ErrorEvent(TurnEvent):
    terminal: bool = True
    error: str

    def payload(self) -> Dict[str, Any]:
        return {"error": self.error}
