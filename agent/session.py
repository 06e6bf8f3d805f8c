"""
Session factory.

Wires one conversation together: provider, agent loop, read tracker,
diff preview generator, metrics tracker and the request controller.
"""

import logging
from dataclasses import dataclass
from typing import Any

from config import Config, resolve_api_key
from core.controller import RequestController, RequestHooks
from core.events import EventBus
from core.logging_config import setup_logging
from core.metrics import TokenMetricsTracker

from .agent import Agent, ToolExecutor
from .diff_preview import DiffPreviewGenerator
from .providers import ChatCompletionsProvider, CompletionProvider
from .tools.read_tracker import ReadBeforeEditValidator, ReadTracker

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Everything a presentation layer needs for one conversation."""

    config: Config
    controller: RequestController
    agent: Agent
    metrics: TokenMetricsTracker
    read_tracker: ReadTracker
    validator: ReadBeforeEditValidator
    diff_preview: DiffPreviewGenerator
    provider: CompletionProvider

    async def close(self) -> None:
        """Release the provider's HTTP client, if it owns one."""
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()


def create_session(
    executor: ToolExecutor,
    config: Config | None = None,
    provider: CompletionProvider | None = None,
    tool_schemas: list[dict[str, Any]] | None = None,
    system_message: str | None = None,
    event_bus: EventBus | None = None,
) -> Session:
    """
    Build a ready-to-use session.

    Configures logging from ``config.log_level`` as well.

    Args:
        executor: Runs the tools the model calls
        config: Configuration (defaults to ``Config()``)
        provider: Completion backend; an OpenAI-compatible HTTP provider
            built from ``config`` when omitted
        tool_schemas: Function tool schemas offered to the model
        system_message: System prompt
        event_bus: Receives request and gate events

    Returns:
        The wired Session
    """
    config = config or Config()
    setup_logging(config.log_level)
    classification = config.tools.to_classification()

    if provider is None:
        api_key = resolve_api_key(config)
        if api_key is None:
            logger.warning("No API key configured (set %s or api_key)", config.api_key_env)
        provider = ChatCompletionsProvider(
            base_url=config.base_url,
            model=config.model,
            api_key=api_key,
            timeout=config.request_timeout,
            temperature=config.temperature,
        )

    read_tracker = ReadTracker()
    validator = ReadBeforeEditValidator(read_tracker)
    agent = Agent(
        provider,
        executor,
        system_message=system_message,
        tool_schemas=tool_schemas,
        max_iterations=config.max_iterations,
        classification=classification,
        read_tracker=read_tracker,
        validator=validator,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )
    metrics = TokenMetricsTracker()
    controller = RequestController(
        agent,
        hooks=RequestHooks.for_metrics(metrics),
        classification=classification,
        event_bus=event_bus,
        auto_approve=config.auto_approve,
        show_reasoning=config.show_reasoning,
    )

    logger.debug("Created session for model %s at %s", config.model, config.base_url)
    return Session(
        config=config,
        controller=controller,
        agent=agent,
        metrics=metrics,
        read_tracker=read_tracker,
        validator=validator,
        diff_preview=DiffPreviewGenerator(validator),
        provider=provider,
    )
