"""ToolExecution and ToolResult models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolStatus(str, Enum):
    """Lifecycle state of a single tool call."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self is not ToolStatus.PENDING


class ToolResult(BaseModel):
    """Outcome reported by a tool executor."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    content: Any = None
    data: Any = None
    message: str | None = None
    error: str | None = None
    user_rejected: bool = Field(default=False, alias="userRejected")

    def to_model_content(self) -> str:
        """Text handed back to the model as the tool message."""
        if self.user_rejected:
            return "Tool execution canceled by user"
        if not self.success:
            return f"Error: {self.error or 'Unknown error'}"
        if self.content is not None:
            return self.content if isinstance(self.content, str) else str(self.content)
        return self.message or "Success"


class ToolExecution(BaseModel):
    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    status: ToolStatus = ToolStatus.PENDING
    needs_approval: bool = False
    result: ToolResult | None = None
