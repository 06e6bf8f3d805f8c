"""
Request lifecycle controller.

Drives one user-message-in / final-message-out cycle: owns the message log,
admits one request at a time, registers the callbacks the model client
reports through, and wires the tool state machine, the approval and
iteration gates, and the request hooks (normally a metrics tracker)
together. All mutation happens on the event loop thread.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from .client import ModelClient, ToolCallbacks
from .events import REQUEST_COMPLETED, REQUEST_STARTED, Event, EventBus, NullEventBus
from .exceptions import is_cancellation
from .logging_config import log_timing
from .message_log import MessageLog
from .metrics import TokenMetricsTracker
from .models import ApiUsage, Message, MessageRole, ToolExecution, ToolResult, gen_id
from .permissions import (
    DEFAULT_TOOL_CLASSIFICATION,
    ApprovalDecision,
    ApprovalGate,
    IterationGuard,
    PendingApproval,
    PendingMaxIterations,
    ToolClassification,
)
from .tool_state import ToolExecutionStateMachine

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "User has interrupted the request."


@dataclass
class RequestHooks:
    """Optional observers of the request lifecycle."""

    on_start_request: Callable[[], None] | None = None
    on_add_api_tokens: Callable[[ApiUsage], None] | None = None
    on_pause_request: Callable[[], None] | None = None
    on_resume_request: Callable[[], None] | None = None
    on_complete_request: Callable[[], None] | None = None

    @classmethod
    def for_metrics(cls, tracker: TokenMetricsTracker) -> "RequestHooks":
        """Hooks that drive a TokenMetricsTracker."""
        return cls(
            on_start_request=tracker.start_request,
            on_add_api_tokens=tracker.add_api_tokens,
            on_pause_request=tracker.pause_metrics,
            on_resume_request=tracker.resume_metrics,
            on_complete_request=tracker.complete_request,
        )


def format_request_error(error: BaseException) -> str:
    """
    Render a failed request as a system message.

    Errors carrying an HTTP status and a provider body of the form
    ``{"error": {"message", "code"}}`` become
    ``API Error (<status>): <message> (Code: <code>)``; anything else is
    ``Error: <message>``.
    """
    status = getattr(error, "status", None) or getattr(error, "status_code", None)
    body = getattr(error, "body", None)
    details = body.get("error") if isinstance(body, dict) else None

    if status is not None and isinstance(details, dict) and details.get("message"):
        text = f"API Error ({status}): {details['message']}"
        if details.get("code"):
            text = f"{text} (Code: {details['code']})"
        return text
    return f"Error: {error}"


class RequestController:
    """
    Conductor of the request lifecycle for one conversation.

    The presentation layer reads ``messages``, ``current_tool_execution``,
    ``pending_approval`` and ``pending_max_iterations`` to render, and calls
    ``approve_tool_execution`` / ``respond_to_max_iterations`` to resolve the
    gates.
    """

    def __init__(
        self,
        model_client: ModelClient,
        hooks: RequestHooks | None = None,
        classification: ToolClassification = DEFAULT_TOOL_CLASSIFICATION,
        event_bus: EventBus | None = None,
        auto_approve: bool = False,
        show_reasoning: bool = True,
    ):
        """
        Initialize the controller and register its callbacks on the client.

        Args:
            model_client: Client that talks to the model and runs tools
            hooks: Request lifecycle observers (see RequestHooks.for_metrics)
            classification: Tool classification deciding which calls are gated
            event_bus: Event bus for lifecycle events
            auto_approve: Initial session auto-approve value
            show_reasoning: Whether reasoning should be displayed
        """
        self._client = model_client
        self._hooks = hooks or RequestHooks()
        self._event_bus: EventBus = event_bus or NullEventBus()
        self._log = MessageLog()
        self._user_history: list[str] = []
        self._processing = False
        self._active_request: str | None = None
        self.show_reasoning = show_reasoning

        self._approval = ApprovalGate(
            on_pause=self._pause,
            on_resume=self._resume,
            on_auto_approve=self._client.set_session_auto_approve,
            event_bus=self._event_bus,
        )
        self._iterations = IterationGuard(
            on_pause=self._pause,
            on_resume=self._resume,
            event_bus=self._event_bus,
        )
        self._tools = ToolExecutionStateMachine(
            self._log,
            classification=classification,
            auto_approve=lambda: self._approval.session_auto_approve,
        )

        if auto_approve:
            self._approval.set_auto_approve(True)
        self._client.set_tool_callbacks(self._build_callbacks())

    # =========================================================================
    # State
    # =========================================================================

    @property
    def messages(self) -> list[Message]:
        return self._log.messages

    @property
    def user_message_history(self) -> list[str]:
        return list(self._user_history)

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def current_tool_execution(self) -> ToolExecution | None:
        return self._tools.current

    @property
    def pending_approval(self) -> PendingApproval | None:
        return self._approval.pending

    @property
    def pending_max_iterations(self) -> PendingMaxIterations | None:
        return self._iterations.pending

    @property
    def session_auto_approve(self) -> bool:
        return self._approval.session_auto_approve

    def tool_status_line(self) -> str | None:
        return self._tools.status_line()

    # =========================================================================
    # Operations
    # =========================================================================

    def add_message(
        self,
        role: MessageRole | str,
        content: str,
        reasoning: str | None = None,
        tool_execution: ToolExecution | None = None,
    ) -> str:
        """Append a message to the log and return its ID."""
        return self._log.add(role, content, reasoning=reasoning, tool_execution=tool_execution)

    async def send_message(self, text: str) -> None:
        """
        Run one request for a user message.

        Does nothing while another request is active. Failures other than
        cancellation are appended to the log as a system message.

        Args:
            text: The user's message
        """
        if self._processing:
            logger.debug("Request already active, ignoring message")
            return

        self.add_message(MessageRole.USER, text)
        self._user_history.append(text)

        request_id = gen_id("req_")
        self._active_request = request_id
        self._processing = True
        self._client.set_tool_callbacks(self._build_callbacks(request_id))

        try:
            self._fire(self._hooks.on_start_request)
            await self._event_bus.publish(Event(type=REQUEST_STARTED, properties={"id": request_id}))
            logger.info("Request %s started", request_id)
            with log_timing(logger, f"Request {request_id}", level=logging.INFO):
                await self._client.chat(text)
        except Exception as e:
            if is_cancellation(e):
                logger.info("Request %s interrupted", request_id)
            elif self._active_request == request_id:
                content = format_request_error(e)
                logger.warning("Request %s failed: %s", request_id, content)
                self.add_message(MessageRole.SYSTEM, content)
            else:
                logger.debug("Ignoring error from abandoned request %s: %s", request_id, e)
        finally:
            # An interrupt already ended this request
            if self._active_request == request_id:
                self._end_request()
                await self._event_bus.publish(
                    Event(type=REQUEST_COMPLETED, properties={"id": request_id})
                )

    def interrupt_request(self) -> None:
        """
        Cancel the active request, if any.

        Signals the model client, force-resolves any pending gate so no
        waiter is left hanging, and records the interruption in the log.
        """
        logger.info("Interrupting request %s", self._active_request)
        self._client.interrupt()
        self._approval.cancel_pending()
        self._iterations.cancel_pending()
        self._tools.clear()
        if self._active_request is not None:
            self._end_request()
        self._processing = False
        self.add_message(MessageRole.SYSTEM, INTERRUPTED_MESSAGE)

    def clear_history(self) -> None:
        """Empty the message log and input history. Token metrics are untouched."""
        self._log.clear()
        self._user_history.clear()
        self._client.clear_history()
        logger.info("Conversation history cleared")

    def approve_tool_execution(self, approved: bool, auto_approve_session: bool = False) -> bool:
        return self._approval.decide(approved, auto_approve_session)

    def respond_to_max_iterations(self, should_continue: bool) -> bool:
        return self._iterations.respond(should_continue)

    def toggle_auto_approve(self) -> bool:
        self._approval.set_auto_approve(not self._approval.session_auto_approve)
        logger.info("Session auto-approve: %s", self._approval.session_auto_approve)
        return self._approval.session_auto_approve

    def toggle_reasoning(self) -> bool:
        self.show_reasoning = not self.show_reasoning
        return self.show_reasoning

    def set_api_key(self, api_key: str) -> None:
        self._client.set_api_key(api_key)

    # =========================================================================
    # Model client callbacks
    # =========================================================================

    def _build_callbacks(self, request_id: str | None = None) -> ToolCallbacks:
        """
        Build the callbacks handed to the model client.

        When ``request_id`` is given, calls arriving after that request stopped
        being the active one are dropped, and the gates answer them with
        "reject" / "stop" without suspending.
        """
        if request_id is None:
            return ToolCallbacks(
                on_thinking_text=self._on_thinking_text,
                on_final_message=self._on_final_message,
                on_tool_start=self._on_tool_start,
                on_tool_end=self._on_tool_end,
                on_api_usage=self._on_api_usage,
                on_tool_approval=self._on_tool_approval,
                on_max_iterations=self._on_max_iterations,
            )

        def is_current() -> bool:
            if self._active_request == request_id:
                return True
            logger.debug("Dropping callback from ended request %s", request_id)
            return False

        def bind(callback: Callable[..., None]) -> Callable[..., None]:
            def bound(*args: Any) -> None:
                if is_current():
                    callback(*args)

            return bound

        async def on_tool_approval(name: str, args: dict[str, Any]) -> ApprovalDecision:
            if not is_current():
                return ApprovalDecision(approved=False)
            return await self._on_tool_approval(name, args)

        async def on_max_iterations(max_iterations: int) -> bool:
            if not is_current():
                return False
            return await self._on_max_iterations(max_iterations)

        return ToolCallbacks(
            on_thinking_text=bind(self._on_thinking_text),
            on_final_message=bind(self._on_final_message),
            on_tool_start=bind(self._on_tool_start),
            on_tool_end=bind(self._on_tool_end),
            on_api_usage=bind(self._on_api_usage),
            on_tool_approval=on_tool_approval,
            on_max_iterations=on_max_iterations,
        )

    def _on_thinking_text(self, text: str, reasoning: str | None = None) -> None:
        if text or reasoning:
            self.add_message(MessageRole.ASSISTANT, text, reasoning=reasoning)

    def _on_final_message(self, text: str, reasoning: str | None = None) -> None:
        self.add_message(MessageRole.ASSISTANT, text, reasoning=reasoning)

    def _on_tool_start(self, name: str, args: dict[str, Any]) -> None:
        self._tools.start(name, args)

    def _on_tool_end(self, name: str, result: ToolResult | dict[str, Any]) -> None:
        self._tools.end(name, result)

    def _on_api_usage(self, usage: ApiUsage | dict[str, Any]) -> None:
        if not isinstance(usage, ApiUsage):
            usage = ApiUsage.model_validate(usage)
        self._fire(self._hooks.on_add_api_tokens, usage)

    async def _on_tool_approval(self, name: str, args: dict[str, Any]) -> ApprovalDecision:
        return await self._approval.request_approval(name, args)

    async def _on_max_iterations(self, max_iterations: int) -> bool:
        return await self._iterations.request_continue(max_iterations)

    # =========================================================================
    # Internals
    # =========================================================================

    def _pause(self) -> None:
        self._fire(self._hooks.on_pause_request)

    def _resume(self) -> None:
        self._fire(self._hooks.on_resume_request)

    def _end_request(self) -> None:
        self._processing = False
        self._active_request = None
        self._fire(self._hooks.on_complete_request)

    @staticmethod
    def _fire(hook: Callable[..., None] | None, *args: Any) -> None:
        if hook is not None:
            hook(*args)
