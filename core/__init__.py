"""
Core orchestration package.

Transport-agnostic request lifecycle: message log, tool execution state
machine, approval and iteration gates, and pause-aware metrics. The agent
package provides the model-side collaborators.
"""

from .client import ModelClient, ToolCallbacks
from .controller import INTERRUPTED_MESSAGE, RequestController, RequestHooks, format_request_error
from .events import Event, EventBus, NullEventBus, QueueEventBus
from .exceptions import (
    CoreError,
    InvalidOperationError,
    NotFoundError,
    ProviderAPIError,
    RequestAbortedError,
    is_cancellation,
)
from .formatting import format_tool_params
from .message_log import MessageLog
from .metrics import TokenMetricsTracker, elapsed_seconds, format_metrics
from .models import (
    ApiUsage,
    DiffHunk,
    DiffLine,
    DiffPreview,
    Message,
    MessageRole,
    TokenMetrics,
    ToolExecution,
    ToolResult,
    ToolStatus,
    gen_id,
)
from .tool_state import ToolExecutionStateMachine, describe_tool_result

__all__ = [
    # Exceptions
    "CoreError",
    "NotFoundError",
    "InvalidOperationError",
    "RequestAbortedError",
    "ProviderAPIError",
    "is_cancellation",
    # Events
    "Event",
    "EventBus",
    "NullEventBus",
    "QueueEventBus",
    # Models
    "Message",
    "MessageRole",
    "ToolExecution",
    "ToolResult",
    "ToolStatus",
    "ApiUsage",
    "TokenMetrics",
    "DiffLine",
    "DiffHunk",
    "DiffPreview",
    "gen_id",
    # Components
    "MessageLog",
    "ToolExecutionStateMachine",
    "describe_tool_result",
    "TokenMetricsTracker",
    "elapsed_seconds",
    "format_metrics",
    "format_tool_params",
    # Controller
    "ModelClient",
    "ToolCallbacks",
    "RequestController",
    "RequestHooks",
    "INTERRUPTED_MESSAGE",
    "format_request_error",
]
