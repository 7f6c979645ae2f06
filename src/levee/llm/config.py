"""Configuration models for the Levee LLM client.

Public API (the "studs"):
    LLMClientConfig: Client configuration (API key, endpoints, timeouts)
    LLMServiceConfig: Response of the LLM config discovery endpoint
"""

import os
import re
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

# Config field -> environment variable
_ENV_MAP: dict[str, str] = {
    "api_key": "LEVEE_API_KEY",
    "base_url": "LEVEE_BASE_URL",
    "grpc_address": "LEVEE_GRPC_ADDRESS",
    "timeout_seconds": "LEVEE_TIMEOUT_SECONDS",
}

_REQUIRED_FIELDS: set[str] = {"api_key"}

_HOST_PORT_PATTERN = re.compile(r"^[^\s/:]+:\d{1,5}$|^\[[0-9a-fA-F:]+\]:\d{1,5}$")


class LLMClientConfig(BaseModel):
    """Configuration for the LLM client.

    TLS is decided by the scheme of ``base_url``: ``https://`` uses an
    encrypted channel, ``http://`` a plaintext one (development only).
    When ``grpc_address`` is not set, the gRPC port is discovered from
    ``{base_url}/sdk/v1/llm/config``.

    Attributes:
        api_key: Levee API key
        base_url: Levee HTTP API URL (e.g. "https://levee.example.com")
        grpc_address: Explicit gRPC address (host:port), skips discovery
        timeout_seconds: Timeout of the discovery HTTP request
    """

    api_key: SecretStr = Field(..., description="Levee API key")
    base_url: str | None = Field(None, description="Levee HTTP API base URL")
    grpc_address: str | None = Field(None, description="gRPC address override (host:port)")
    timeout_seconds: int = Field(30, ge=1, le=600, description="Discovery request timeout")

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("api_key must not be empty")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str | None) -> str | None:
        """Require an http(s) URL and strip the trailing slash."""
        if v is None:
            return v
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"base_url must start with 'https://' or 'http://': {v!r}")
        return v.rstrip("/")

    @field_validator("grpc_address")
    @classmethod
    def validate_grpc_address(cls, v: str | None) -> str | None:
        if v is not None and not _HOST_PORT_PATTERN.match(v):
            raise ValueError(f"grpc_address must be in host:port form: {v!r}")
        return v

    @model_validator(mode="after")
    def validate_endpoints(self) -> "LLMClientConfig":
        if not self.base_url and not self.grpc_address:
            raise ValueError("either base_url or grpc_address is required")
        return self

    @property
    def use_tls(self) -> bool:
        return bool(self.base_url and self.base_url.startswith("https://"))

    @property
    def host(self) -> str | None:
        """Hostname of ``base_url``, used to compose the discovered address."""
        if not self.base_url:
            return None
        return urlparse(self.base_url).hostname

    @classmethod
    def from_env(cls) -> "LLMClientConfig":
        """Create LLMClientConfig from environment variables.

        Environment variables:
            LEVEE_API_KEY: API key (required)
            LEVEE_BASE_URL: HTTP API base URL
            LEVEE_GRPC_ADDRESS: gRPC address override
            LEVEE_TIMEOUT_SECONDS: Discovery request timeout

        Returns:
            LLMClientConfig instance

        Raises:
            ValueError: If a required variable is missing
        """
        kwargs: dict[str, Any] = {}
        for field, env_var in _ENV_MAP.items():
            value = os.environ.get(env_var)
            if value is None and field in _REQUIRED_FIELDS:
                raise ValueError(f"{env_var} environment variable is required")
            if value is not None:
                kwargs[field] = value

        return cls(**kwargs)


class LLMServiceConfig(BaseModel):
    """Response of ``GET /sdk/v1/llm/config``."""

    available: bool = False
    grpc_port: int = Field(0, ge=0, le=65535)
    default_provider: str = ""
    configured_providers: list[str] = Field(default_factory=list)


__all__ = ["LLMClientConfig", "LLMServiceConfig"]
