"""Provider adapter interface.

An adapter turns one vendor's streaming reply into a plain sequence of text
fragments. Subclasses supply three pieces: how history is encoded for the
vendor, how the raw event stream is opened, and which part of each event is
content. Error translation and empty-fragment filtering live here.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, ClassVar, Dict, List, Optional, Sequence, Tuple, Type

import structlog

from ..config import Settings
from ..domain.exceptions import ChatGatewayError, CredentialError, UpstreamStreamError
from ..domain.models import Message

logger = structlog.get_logger()


class ProviderAdapter(ABC):
    """Base class for vendor adapters."""

    provider_id: ClassVar[str]
    display_name: ClassVar[str]
    models: ClassVar[Tuple[str, ...]] = ()

    # Vendor exceptions meaning the credential was rejected.
    credential_errors: ClassVar[Tuple[Type[BaseException], ...]] = ()
    # Base vendor exception; anything else escapes untranslated.
    upstream_errors: ClassVar[Tuple[Type[BaseException], ...]] = ()

    def __init__(self, api_key: Optional[str]) -> None:
        if not api_key:
            raise CredentialError(f"{self.display_name} API key is required")
        self.api_key = api_key

    @classmethod
    def default_api_key(cls, settings: Settings) -> Optional[str]:
        """System-default credential, if the provider has one."""
        return None

    @classmethod
    def from_request(cls, api_key: Optional[str], settings: Settings) -> "ProviderAdapter":
        """Build an adapter for one turn; explicit keys win over defaults."""
        return cls(api_key or cls.default_api_key(settings))

    async def aclose(self) -> None:
        """Release the vendor client."""

    @abstractmethod
    def encode_history(self, history: Sequence[Message]) -> List[Dict[str, Any]]:
        """Encode the conversation in the vendor's message format."""

    @abstractmethod
    def extract_fragment(self, event: Any) -> str:
        """Content carried by one vendor event, or an empty string."""

    @abstractmethod
    def _events(self, model: str, payload: List[Dict[str, Any]]) -> AsyncIterator[Any]:
        """Open the vendor stream and yield its raw events."""

    def _translate_error(self, exc: BaseException) -> ChatGatewayError:
        if isinstance(exc, self.credential_errors):
            return CredentialError(f"{self.display_name} rejected the API key: {exc}")
        return UpstreamStreamError(f"{self.display_name} error: {exc}")

    async def stream(self, model: str, history: Sequence[Message]) -> AsyncIterator[str]:
        """Yield the reply's text fragments in order.

        Vendor failures surface as CredentialError or UpstreamStreamError,
        possibly after some fragments were already yielded.
        """
        payload = self.encode_history(history)
        events = self._events(model, payload)
        try:
            async for event in events:
                fragment = self.extract_fragment(event)
                if fragment:
                    yield fragment
        except self.upstream_errors as e:
            logger.warning(
                "provider_stream_failed",
                provider=self.provider_id,
                model=model,
                error=str(e),
            )
            raise self._translate_error(e) from e
        finally:
            await events.aclose()
