"""Main Config model."""

from typing import Any

from pydantic import BaseModel, Field, model_validator

from .defaults import (
    DEFAULT_API_KEY_ENV,
    DEFAULT_AUTO_APPROVE,
    DEFAULT_BASE_URL,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MODEL,
    DEFAULT_MODEL_PROVIDERS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_SHOW_REASONING,
)
from .tools_config import ToolClassificationConfig


class Config(BaseModel):
    """Main configuration model."""

    provider: str | None = Field(
        default=None,
        description="Provider preset name; fills model, base_url and api_key_env when unset",
    )
    model: str = Field(
        default=DEFAULT_MODEL,
        description="Model identifier sent to the provider",
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Root URL of the OpenAI-compatible API",
    )
    api_key_env: str | None = Field(
        default=DEFAULT_API_KEY_ENV,
        description="Environment variable holding the API key",
    )
    api_key: str | None = Field(
        default=None,
        description="API key; takes precedence over api_key_env",
    )
    max_iterations: int = Field(
        default=DEFAULT_MAX_ITERATIONS,
        ge=1,
        description="Agent turns before asking whether to continue",
    )
    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        description="Provider retries per turn",
    )
    retry_delay: float = Field(
        default=DEFAULT_RETRY_DELAY_SECONDS,
        ge=0,
        description="Seconds to wait between provider retries",
    )
    request_timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        gt=0,
        description="Provider request timeout in seconds",
    )
    temperature: float | None = Field(
        default=None,
        description="Sampling temperature, provider default when unset",
    )
    auto_approve: bool = Field(
        default=DEFAULT_AUTO_APPROVE,
        description="Start sessions with auto-approve on (never covers dangerous tools)",
    )
    show_reasoning: bool = Field(
        default=DEFAULT_SHOW_REASONING,
        description="Show model reasoning alongside messages",
    )
    log_level: str | None = Field(
        default=None,
        description="Logging level name; the LOG_LEVEL environment variable, then INFO, when unset",
    )
    tools: ToolClassificationConfig = Field(
        default_factory=ToolClassificationConfig,
        description="Tool gating classification",
    )

    @model_validator(mode="before")
    @classmethod
    def apply_provider_preset(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not data.get("provider"):
            return data
        preset = DEFAULT_MODEL_PROVIDERS.get(data["provider"])
        if preset is None:
            raise ValueError(
                f"Unknown provider '{data['provider']}'. "
                f"Available: {', '.join(sorted(DEFAULT_MODEL_PROVIDERS))}"
            )
        data = dict(data)
        data.setdefault("model", preset["default_model"])
        data.setdefault("base_url", preset["base_url"])
        data.setdefault("api_key_env", preset["env_key"])
        return data
