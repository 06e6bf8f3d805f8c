"""Message models."""

import time
from enum import Enum

from pydantic import BaseModel, Field

from .tool_execution import ToolExecution


class MessageRole(str, Enum):
    """Author of a message in the conversation log."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL_EXECUTION = "tool_execution"


class Message(BaseModel):
    id: str
    role: MessageRole
    content: str
    reasoning: str | None = None
    timestamp: float = Field(default_factory=time.time)
    tool_execution: ToolExecution | None = None
