"""
Domain models for the orchestration core.

These are the data structures shared by the controller, the gates and the
model-side collaborators.
"""

from .diff_preview import DiffHunk, DiffLine, DiffPreview
from .message import Message, MessageRole
from .token_metrics import ApiUsage, TokenMetrics
from .tool_execution import ToolExecution, ToolResult, ToolStatus
from .utils import gen_id

__all__ = [
    # Utils
    "gen_id",
    # Message models
    "Message",
    "MessageRole",
    # Tool models
    "ToolExecution",
    "ToolResult",
    "ToolStatus",
    # Metrics models
    "ApiUsage",
    "TokenMetrics",
    # Diff models
    "DiffLine",
    "DiffHunk",
    "DiffPreview",
]
