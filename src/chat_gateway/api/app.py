"""
FastAPI Application Module

HTTP surface of the streaming chat gateway: conversation CRUD, the provider
catalog, and a `/chat` endpoint that streams a reply from the selected LLM
provider as server-sent events.

Key Features:
- Async request handling with FastAPI
- One streaming protocol over several vendor wire formats
- Structured logging and Prometheus metrics
- CORS and OpenTelemetry support
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import generate_latest
from structlog import get_logger

from ..config import get_settings
from ..domain.exceptions import ChatGatewayError
from ..domain.models import ChatRequest, Conversation, ConversationCreate, Message, ProviderInfo
from ..log_setup import configure_logging
from ..metrics import CUSTOM_REGISTRY, ERRORS, REQUESTS
from ..providers.registry import ProviderRegistry
from ..repositories.base import ConversationStore
from ..repositories.memory import InMemoryConversationStore
from ..services.gateway import ChatGateway
from .sse import SSE_HEADERS, encode_stream

settings = get_settings()
configure_logging(settings)

logger = get_logger()

# Core service instances
repository = InMemoryConversationStore()
providers = ProviderRegistry(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Logs app startup/shutdown"""
    logger.info("application_startup_complete", providers=[p.id for p in providers.catalog()])
    yield
    logger.info("application_shutdown_complete")


def get_repository() -> ConversationStore:
    """Returns the conversation storage instance"""
    return repository


def get_providers() -> ProviderRegistry:
    """Returns the provider registry"""
    return providers


def get_gateway(
    repository: ConversationStore = Depends(get_repository),
    providers: ProviderRegistry = Depends(get_providers),
) -> ChatGateway:
    """Returns a chat gateway bound to the current store and registry"""
    return ChatGateway(repository, providers)


app = FastAPI(
    title="Chat Gateway API",
    description="Streams replies from interchangeable LLM providers over server-sent events",
    version="0.1.0",
    lifespan=lifespan,
)

# Enable cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Set up request tracing
FastAPIInstrumentor.instrument_app(app)


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Counts and logs requests"""
    REQUESTS.inc()
    logger.info("request_started", method=request.method, path=request.url.path)
    try:
        response = await call_next(request)
    except Exception as e:
        ERRORS.inc()
        logger.error("request_failed", path=request.url.path, error=str(e))
        raise
    if response.status_code >= 500:
        ERRORS.inc()
    return response


@app.get("/conversations", response_model=List[Conversation])
async def list_conversations(
    repository: ConversationStore = Depends(get_repository),
) -> List[Conversation]:
    """Lists conversations, most recently active first"""
    try:
        return await repository.list_conversations()
    except Exception as e:
        logger.error("list_conversations_error", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to list conversations")


@app.post("/conversations", response_model=Conversation)
async def create_conversation(
    body: Optional[ConversationCreate] = None,
    repository: ConversationStore = Depends(get_repository),
) -> Conversation:
    """Starts a new conversation thread"""
    body = body or ConversationCreate()
    try:
        return await repository.create_conversation(body.title)
    except Exception as e:
        logger.error("create_conversation_error", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to create conversation")


@app.get("/conversations/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: str,
    repository: ConversationStore = Depends(get_repository),
) -> Conversation:
    """Retrieves a specific conversation by its ID"""
    try:
        conversation = await repository.get_conversation(conversation_id)
    except Exception as e:
        logger.error("get_conversation_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to get conversation")
    if conversation is None:
        logger.warning("conversation_not_found", conversation_id=conversation_id)
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@app.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    repository: ConversationStore = Depends(get_repository),
) -> dict:
    """Deletes a conversation together with its messages"""
    try:
        deleted = await repository.delete_conversation(conversation_id)
    except Exception as e:
        logger.error("delete_conversation_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to delete conversation")
    if not deleted:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"success": True}


@app.get("/conversations/{conversation_id}/messages", response_model=List[Message])
async def get_messages(
    conversation_id: str,
    repository: ConversationStore = Depends(get_repository),
) -> List[Message]:
    """Gets the ordered message history of a conversation"""
    try:
        return await repository.list_messages(conversation_id)
    except Exception as e:
        logger.error("get_messages_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to get messages")


@app.get("/providers", response_model=List[ProviderInfo])
async def list_providers(
    providers: ProviderRegistry = Depends(get_providers),
) -> List[ProviderInfo]:
    """Lists registered providers with their suggested models"""
    return providers.catalog()


@app.post("/chat")
async def chat(
    request: ChatRequest,
    gateway: ChatGateway = Depends(get_gateway),
) -> StreamingResponse:
    """
    Saves the user's message and streams the assistant reply.
    Errors after this point are reported in-stream as an error event.
    """
    try:
        turn = await gateway.open_turn(request)
    except ChatGatewayError as e:
        logger.warning("chat_open_rejected", code=e.code, error=e.message)
        raise HTTPException(status_code=e.http_status, detail=e.message)
    except Exception as e:
        logger.error("chat_open_error", conversation_id=request.conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to process chat request")

    return StreamingResponse(
        encode_stream(gateway.stream_turn(turn)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/metrics")
async def metrics():
    """Provides Prometheus metrics for system monitoring"""
    return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")
