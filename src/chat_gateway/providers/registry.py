"""Registry mapping provider identifiers to adapter classes."""

from typing import Dict, Iterable, List, Optional, Type

import structlog

from ..config import Settings
from ..domain.exceptions import ProviderNotFoundError
from ..domain.models import ProviderInfo
from .anthropic_adapter import AnthropicAdapter
from .base import ProviderAdapter
from .gemini_adapter import GeminiAdapter
from .openai_adapter import OpenAIAdapter

logger = structlog.get_logger()

DEFAULT_ADAPTERS = (OpenAIAdapter, AnthropicAdapter, GeminiAdapter)


class ProviderRegistry:
    """Closed set of adapter variants, selected per turn by provider id."""

    def __init__(
        self,
        settings: Settings,
        adapters: Iterable[Type[ProviderAdapter]] = DEFAULT_ADAPTERS,
    ) -> None:
        self.settings = settings
        self._adapters: Dict[str, Type[ProviderAdapter]] = {}
        for adapter_cls in adapters:
            self.register(adapter_cls)

    def register(self, adapter_cls: Type[ProviderAdapter]) -> None:
        self._adapters[adapter_cls.provider_id] = adapter_cls
        logger.info("provider_registered", provider=adapter_cls.provider_id)

    def get(self, provider_id: str) -> Type[ProviderAdapter]:
        try:
            return self._adapters[provider_id]
        except KeyError:
            raise ProviderNotFoundError(provider_id) from None

    def create_adapter(self, provider_id: str, api_key: Optional[str] = None) -> ProviderAdapter:
        """Instantiate the adapter for one turn.

        Raises ProviderNotFoundError or CredentialError before any network call.
        """
        return self.get(provider_id).from_request(api_key, self.settings)

    def catalog(self) -> List[ProviderInfo]:
        return [
            ProviderInfo(
                id=adapter_cls.provider_id,
                name=adapter_cls.display_name,
                models=list(adapter_cls.models),
                requires_api_key=adapter_cls.default_api_key(self.settings) is None,
                has_default_key=adapter_cls.default_api_key(self.settings) is not None,
            )
            for adapter_cls in self._adapters.values()
        ]
