"""
Configuration management for the Kupmios provider.

Supports configuration via environment variables and .env files.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class KupmiosConfig(BaseSettings):
    """
    Configuration settings for the Kupmios provider.

    All settings can be configured via environment variables with the KUPMIOS_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="KUPMIOS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Backend endpoints
    kupo_url: str = Field(
        default="http://localhost:1442",
        description="Kupo indexer base URL"
    )
    ogmios_url: str = Field(
        default="ws://localhost:1337",
        description="Ogmios WebSocket URL"
    )

    # Access proxy credentials
    client_id: Optional[str] = Field(
        default=None,
        description="Access proxy client id (CF-Access-Client-Id)"
    )
    client_secret: Optional[str] = Field(
        default=None,
        description="Access proxy client secret (CF-Access-Client-Secret)"
    )

    # Confirmation polling
    confirmation_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Delay between confirmation polls"
    )
    confirmation_settle_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay after the outputs appear before reporting confirmation"
    )

    # HTTP settings
    http_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Timeout for indexer requests (unbounded when unset)"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )


# Global config instance
_config: Optional[KupmiosConfig] = None


def get_config() -> KupmiosConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = KupmiosConfig()
    return _config


def set_config(config: KupmiosConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
