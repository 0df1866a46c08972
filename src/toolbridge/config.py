"""Configuration settings for the application."""

from pydantic import BaseModel
from pydantic_settings import BaseSettings

from toolbridge.core.errors import ConfigurationError


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    MAX_TOKENS: int = 1000

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


class BridgeConfig(BaseModel):
    """Explicit, immutable configuration handed to the model client and the connection step."""

    api_key: str
    model_id: str
    max_tokens: int = 1000

    class Config:
        """Configuration for the pydantic model."""

        frozen = True
        protected_namespaces = ()  # allow the ``model_id`` field name


def load_config(source: Settings | None = None) -> BridgeConfig:
    """
    Build a :class:`BridgeConfig` from *source* (defaults to the module ``settings``).

    Raises
    ------
    ConfigurationError
        If no API key is available for the model service.
    """
    source = source or settings
    api_key = (source.ANTHROPIC_API_KEY or "").strip()
    if not api_key:
        raise ConfigurationError("ANTHROPIC_API_KEY is not set")

    return BridgeConfig(
        api_key=api_key,
        model_id=source.ANTHROPIC_MODEL,
        max_tokens=source.MAX_TOKENS,
    )


settings = Settings()
