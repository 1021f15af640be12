"""Exception taxonomy shared by the store, the adapters and the gateway.

Every error raised across module boundaries derives from ChatGatewayError so
that the HTTP layer can map it to a status code, and the streaming layer can
turn it into a terminal error event.
"""


class ChatGatewayError(Exception):
    """Base class for gateway errors.

    Attributes:
        message: human-readable description, safe to show to the caller.
        code: machine-readable error code.
        http_status: status code used when the error surfaces on a REST endpoint.
    """

    code = "CHAT_GATEWAY_ERROR"
    http_status = 500

    def __init__(self, message: str, **extra):
        self.message = message
        self.extra = extra
        super().__init__(message)


class ValidationError(ChatGatewayError):
    """Required chat-turn fields are missing."""

    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(ChatGatewayError):
    code = "NOT_FOUND"
    http_status = 404


class ConversationNotFoundError(NotFoundError):
    def __init__(self, conversation_id: str):
        super().__init__(
            f"Conversation {conversation_id} not found", conversation_id=conversation_id
        )
        self.conversation_id = conversation_id


class ProviderNotFoundError(NotFoundError):
    def __init__(self, provider: str):
        super().__init__(f"Unsupported provider: {provider}", provider=provider)
        self.provider = provider


class CredentialError(ChatGatewayError):
    """A required API key is missing or was rejected by the vendor."""

    code = "CREDENTIAL_ERROR"
    http_status = 401


class UpstreamStreamError(ChatGatewayError):
    """The vendor failed while generating a reply."""

    code = "UPSTREAM_ERROR"
    http_status = 502


class StorageError(ChatGatewayError):
    code = "STORAGE_ERROR"
    http_status = 500
