"""Application settings loaded from the environment."""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway settings.

    Only the OpenAI-style provider has a system-default credential; the other
    providers must receive an explicit key with every chat turn.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHAT_GATEWAY_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CHAT_GATEWAY_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CHAT_GATEWAY_OPENAI_BASE_URL", "OPENAI_BASE_URL"),
    )
    anthropic_max_tokens: int = 4096
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
