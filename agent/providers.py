"""
Async client for OpenAI-compatible chat completion APIs.

Sends the conversation and tool schemas to ``<base_url>/chat/completions``
and turns the first choice into a ``Completion``.
"""

import logging
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, Field

from core.exceptions import ProviderAPIError
from core.models import ApiUsage

logger = logging.getLogger(__name__)

# Constants
COMPLETIONS_ENDPOINT = "/chat/completions"
REQUEST_TIMEOUT_SECONDS = 120.0


class ToolCall(BaseModel):
    """A tool call requested by the model. ``arguments`` is raw JSON text."""

    id: str
    name: str
    arguments: str = "{}"


class Completion(BaseModel):
    """One assistant turn."""

    content: str | None = None
    reasoning: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: ApiUsage | None = None
    finish_reason: str | None = None

    def to_message(self) -> dict[str, Any]:
        """The assistant message to append to the provider conversation."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


class CompletionProvider(Protocol):
    """Protocol for completion backends used by the agent loop."""

    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> Completion:
        ...

    def set_api_key(self, api_key: str) -> None:
        ...


class ChatCompletionsProvider:
    """Async HTTP client for an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        temperature: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the provider.

        Args:
            base_url: API root, e.g. ``https://api.openai.com/v1``
            model: Model identifier sent with every request
            api_key: Bearer token; requests are unauthenticated without one
            timeout: Request timeout in seconds
            temperature: Sampling temperature, omitted when None
            client: Preconfigured client (tests pass a MockTransport here)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def set_api_key(self, api_key: str) -> None:
        self._api_key = api_key

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> Completion:
        """Request one completion.

        Args:
            messages: Conversation in chat-completions format
            tools: Function tool schemas

        Returns:
            The parsed first choice

        Raises:
            ProviderAPIError: On an HTTP error status
            httpx.HTTPError: On transport failures
        """
        payload: dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        if self.temperature is not None:
            payload["temperature"] = self.temperature

        client = await self._get_client()
        response = await client.post(
            f"{self.base_url}{COMPLETIONS_ENDPOINT}", json=payload, headers=self._headers()
        )
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            raise ProviderAPIError(response.status_code, body)

        return parse_completion(response.json())


def parse_completion(data: dict[str, Any]) -> Completion:
    """Parse a chat-completions response body."""
    choices = data.get("choices") or []
    if not choices:
        raise ProviderAPIError(None, data, "Provider returned no choices")

    choice = choices[0]
    message = choice.get("message") or {}
    tool_calls = [
        ToolCall(
            id=call.get("id", ""),
            name=(call.get("function") or {}).get("name", ""),
            arguments=(call.get("function") or {}).get("arguments") or "{}",
        )
        for call in message.get("tool_calls") or []
    ]
    usage = data.get("usage")

    return Completion(
        content=message.get("content"),
        # Providers disagree on the field name
        reasoning=message.get("reasoning_content") or message.get("reasoning"),
        tool_calls=tool_calls,
        usage=ApiUsage.model_validate(usage) if usage else None,
        finish_reason=choice.get("finish_reason"),
    )
