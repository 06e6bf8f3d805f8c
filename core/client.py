"""
Contracts between the controller and the model client.

The model client talks to the completion provider and runs tools; the
controller only sees it through ``ModelClient`` and reports back through
the ``ToolCallbacks`` it registers.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from .models import ApiUsage, ToolResult
from .permissions import ApprovalDecision


@dataclass
class ToolCallbacks:
    """Callback surface a model client reports events through."""

    on_thinking_text: Callable[[str, str | None], None] | None = None
    on_final_message: Callable[[str, str | None], None] | None = None
    on_tool_start: Callable[[str, dict[str, Any]], None] | None = None
    on_tool_end: Callable[[str, ToolResult], None] | None = None
    on_api_usage: Callable[[ApiUsage], None] | None = None
    on_tool_approval: Callable[[str, dict[str, Any]], Awaitable[ApprovalDecision]] | None = None
    on_max_iterations: Callable[[int], Awaitable[bool]] | None = None


class ModelClient(Protocol):
    """Protocol for model client implementations."""

    async def chat(self, user_text: str) -> None:
        """Run one user turn to completion, reporting through the callbacks."""
        ...

    def set_tool_callbacks(self, callbacks: ToolCallbacks) -> None:
        ...

    def set_session_auto_approve(self, enabled: bool) -> None:
        ...

    def set_api_key(self, api_key: str) -> None:
        ...

    def clear_history(self) -> None:
        ...

    def interrupt(self) -> None:
        """Ask the in-flight ``chat`` to stop; it should raise RequestAbortedError."""
        ...
