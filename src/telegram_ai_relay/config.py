"""Configuration management for the Telegram AI relay."""

import os
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

# Seconds between two getUpdates polls. Deliberately not a setting.
POLL_INTERVAL = 5

HOSTED_API_URL = "https://api.openai.com/v1/chat/completions"
PROXY_API_URL = "http://localhost:8080/v1/chat/completions"


class AIBackend(str, Enum):
    """Which completion backend the relay talks to."""

    HOSTED = "hosted"
    PROXY = "proxy"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    telegram_bot_token: str = Field(
        ...,
        description="Telegram Bot API token from @BotFather",
    )
    telegram_api_base_url: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL",
    )
    ai_backend: AIBackend = Field(
        default=AIBackend.HOSTED,
        description="'hosted' for the bearer-authenticated API, 'proxy' for a self-hosted proxy",
    )
    ai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPEN_AI", "AI_API_KEY", "ai_api_key"),
        description="Bearer credential for the hosted completion API",
    )
    ai_api_url: Optional[str] = Field(
        default=None,
        description="Chat completion endpoint (defaults depend on ai_backend)",
    )
    ai_model: str = Field(
        default="gpt-3.5-turbo",
        description="Model name sent with every completion request",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout in seconds for every outbound call",
    )

    @model_validator(mode="after")
    def check_backend(self) -> "Settings":
        if not self.telegram_bot_token.strip():
            raise ValueError("TELEGRAM_BOT_TOKEN is empty")
        if self.ai_backend is AIBackend.HOSTED and not self.ai_api_key:
            raise ValueError("OPEN_AI (or AI_API_KEY) is required for the hosted AI backend")
        if self.ai_api_url is None:
            self.ai_api_url = HOSTED_API_URL if self.ai_backend is AIBackend.HOSTED else PROXY_API_URL
        return self

    @property
    def completion_api_key(self) -> Optional[str]:
        """Credential to send, or None for the proxy variant."""
        if self.ai_backend is AIBackend.PROXY:
            return None
        return self.ai_api_key


def get_settings(env_file: Optional[str] = None) -> Settings:
    """Get application settings, loading from environment.

    Raises:
        ConfigurationError: if a required value is missing or invalid, or an
            explicitly given env file does not exist
    """
    if env_file is not None and not os.path.exists(env_file):
        raise ConfigurationError(f"Env file not found: {env_file}")

    try:
        if env_file is not None:
            return Settings(_env_file=env_file)
        return Settings()
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e
