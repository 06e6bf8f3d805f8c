"""
Tool execution state machine.

Tracks the single in-flight tool call: ``start`` creates it in ``pending``
and appends a tool message, ``end`` moves it to a terminal state and
rewrites that message. A ``start`` without a matching ``end`` replaces the
current pointer; the stale message stays in the log.
"""

import logging
from typing import Any, Callable

from .formatting import format_tool_params
from .message_log import MessageLog
from .models import MessageRole, ToolExecution, ToolResult, ToolStatus, gen_id
from .permissions import DEFAULT_TOOL_CLASSIFICATION, ToolClassification

logger = logging.getLogger(__name__)

STATUS_ICONS = {
    ToolStatus.PENDING: "⏳",
    ToolStatus.COMPLETED: "✓",
    ToolStatus.FAILED: "🔴",
    ToolStatus.CANCELED: "🚫",
}


def describe_tool_result(name: str, result: ToolResult) -> tuple[ToolStatus, str]:
    """
    Map a tool result to its terminal status and message text.

    Args:
        name: Tool name
        result: Result reported by the executor

    Returns:
        Tuple of (status, content)
    """
    if result.user_rejected:
        return ToolStatus.CANCELED, f"🚫 {name} rejected by user"
    if not result.success:
        return ToolStatus.FAILED, f"🔴 {name} failed: {result.error or 'Unknown error'}"
    content = f"✓ {name} completed successfully"
    if result.message:
        content = f"{content} - {result.message}"
    return ToolStatus.COMPLETED, content


class ToolExecutionStateMachine:
    """Lifecycle of the current tool call and its message in the log."""

    def __init__(
        self,
        log: MessageLog,
        classification: ToolClassification = DEFAULT_TOOL_CLASSIFICATION,
        auto_approve: Callable[[], bool] = lambda: False,
    ):
        """
        Initialize the state machine.

        Args:
            log: Message log tool messages are written to
            classification: Tool classification used to derive needs_approval
            auto_approve: Returns the current session auto-approve flag
        """
        self._log = log
        self._classification = classification
        self._auto_approve = auto_approve
        self._current: ToolExecution | None = None

    @property
    def current(self) -> ToolExecution | None:
        return self._current

    def start(self, name: str, args: dict[str, Any] | None = None) -> ToolExecution:
        """
        Begin tracking a tool call.

        Args:
            name: Tool name
            args: Tool arguments

        Returns:
            The new pending ToolExecution
        """
        if self._current is not None:
            logger.warning(
                "Tool %s started while %s is still pending; replacing current tool",
                name,
                self._current.name,
            )

        execution = ToolExecution(
            id=gen_id("tool_"),
            name=name,
            args=dict(args or {}),
            needs_approval=self._classification.needs_approval(name, self._auto_approve()),
        )
        self._log.add(
            MessageRole.TOOL_EXECUTION,
            f"Executing {name}...",
            tool_execution=execution,
        )
        self._current = execution
        logger.debug("Tool %s started (needs_approval=%s)", name, execution.needs_approval)
        return execution

    def end(self, name: str, result: ToolResult | dict[str, Any]) -> ToolExecution | None:
        """
        Finish the current tool call.

        Args:
            name: Tool name reported by the model client
            result: Executor result (model or raw dict)

        Returns:
            The finished ToolExecution, or None if no tool was in flight
        """
        execution = self._current
        if execution is None:
            logger.warning("Tool %s ended with no tool in flight", name)
            return None
        if execution.name != name:
            logger.warning("Tool end for %s does not match current tool %s", name, execution.name)

        if not isinstance(result, ToolResult):
            result = ToolResult.model_validate(result)

        status, content = describe_tool_result(name, result)
        execution.status = status
        execution.result = result

        message = self._log.find_by_tool_execution(execution.id)
        if message is not None:
            message.content = content
            message.tool_execution = execution

        self._current = None
        logger.debug("Tool %s finished: %s", name, status.value)
        return execution

    def clear(self) -> None:
        """Drop the current pointer without touching the log."""
        self._current = None

    def status_line(self) -> str | None:
        """Human-readable one-liner for the current tool, or None."""
        execution = self._current
        if execution is None:
            return None
        params = format_tool_params(execution.name, execution.args, include_prefix=False)
        line = f"{STATUS_ICONS[execution.status]} {execution.name}"
        if params:
            line = f"{line} {params}"
        if execution.needs_approval:
            line = f"{line} (awaiting approval)"
        return line
