"""API Configuration.

Credentials and endpoint URLs for the Alpaca trading and market data APIs.
Uses pydantic-settings to load them from ``APCA_API_*`` environment
variables, falling back to a ``.env`` file in the working directory.
"""

from typing import Any, Optional
from urllib.parse import urlparse
import logging

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from apcacli.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_KEY_ID = "APCA_API_KEY_ID"
ENV_SECRET_KEY = "APCA_API_SECRET_KEY"
ENV_BASE_URL = "APCA_API_BASE_URL"
ENV_DATA_URL = "APCA_API_DATA_URL"
ENV_STREAM_URL = "APCA_API_STREAM_URL"
ENV_DATA_STREAM_URL = "APCA_API_DATA_STREAM_URL"
ENV_DATA_FEED = "APCACLI_DATA_FEED"

DEFAULT_BASE_URL = "https://paper-api.alpaca.markets"
DEFAULT_DATA_URL = "https://data.alpaca.markets"
DATA_FEEDS = ("iex", "sip")

# Error locations reported by pydantic, mapped back to variable names
ENV_NAMES = {
    "key_id": ENV_KEY_ID,
    "secret_key": ENV_SECRET_KEY,
    "base_url": ENV_BASE_URL,
    "data_url": ENV_DATA_URL,
    "stream_url": ENV_STREAM_URL,
    "data_stream_url": ENV_DATA_STREAM_URL,
    "data_feed": ENV_DATA_FEED,
    ENV_DATA_FEED: ENV_DATA_FEED,
}


def _normalize_url(url: str) -> str:
    """Strip trailing slashes and an API version suffix."""
    url = url.strip().rstrip("/")
    if url.endswith("/v2"):
        url = url[: -len("/v2")]
    return url


class ApiConfig(BaseSettings):
    """Connection settings for the Alpaca APIs."""

    key_id: str
    secret_key: str
    base_url: str = DEFAULT_BASE_URL
    data_url: str = DEFAULT_DATA_URL
    # Derived by the SDK when unset
    stream_url: Optional[str] = None
    data_stream_url: Optional[str] = None
    data_feed: str = Field("iex", validation_alias=ENV_DATA_FEED)

    model_config = {
        "env_prefix": "APCA_API_",
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("key_id", "secret_key", mode="before")
    @classmethod
    def _require_value(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("must not be empty")
        return value

    @field_validator("base_url", mode="before")
    @classmethod
    def _base_url(cls, value: Any) -> Any:
        return _normalize_url(value or DEFAULT_BASE_URL) if isinstance(value, str) else value

    @field_validator("data_url", mode="before")
    @classmethod
    def _data_url(cls, value: Any) -> Any:
        return _normalize_url(value or DEFAULT_DATA_URL) if isinstance(value, str) else value

    @field_validator("stream_url", "data_stream_url", mode="before")
    @classmethod
    def _optional_url(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("data_feed", mode="before")
    @classmethod
    def _data_feed(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower() or "iex"
            if value not in DATA_FEEDS:
                raise ValueError(f"'{value}' is not one of: {', '.join(DATA_FEEDS)}")
        return value

    @property
    def paper(self) -> bool:
        """Whether the trading endpoint is Alpaca's paper environment."""
        host = urlparse(self.base_url).netloc or self.base_url
        return "paper" in host

    @classmethod
    def from_env(cls) -> "ApiConfig":
        """Build the configuration from the environment and ``.env``.

        Variables already set in the environment take precedence over the
        file.

        Raises:
            ConfigurationError: If credentials are missing or a value is
                invalid.
        """
        try:
            config = cls()
        except ValidationError as e:
            raise _configuration_error(e) from None

        logger.debug(
            "Using trading API at %s (paper=%s), data API at %s",
            config.base_url, config.paper, config.data_url,
        )
        return config


def _configuration_error(error: ValidationError) -> ConfigurationError:
    """Describe the first validation failure in terms of its variable."""
    detail = error.errors()[0]
    location = str(detail["loc"][0]) if detail["loc"] else ""
    name = ENV_NAMES.get(location, location)
    if detail["type"] == "missing":
        return ConfigurationError(f"environment variable {name} is not set")
    reason = detail.get("ctx", {}).get("error") or detail["msg"]
    return ConfigurationError(f"invalid {name} value", cause=str(reason))
