"""
Canonical message log for one conversation.

All appends go through ``add``; the only in-place updates are to
``tool_execution`` messages when their tool finishes.
"""

import logging
import time

from .exceptions import NotFoundError
from .models import Message, MessageRole, ToolExecution, gen_id

logger = logging.getLogger(__name__)


class MessageLog:
    """Ordered, append-mostly list of conversation messages."""

    def __init__(self):
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(list(self._messages))

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the log in insertion order."""
        return list(self._messages)

    def add(
        self,
        role: MessageRole | str,
        content: str,
        reasoning: str | None = None,
        tool_execution: ToolExecution | None = None,
    ) -> str:
        """
        Append a message with a fresh ID and the current timestamp.

        Args:
            role: Message author
            content: Message text
            reasoning: Optional model reasoning shown alongside the text
            tool_execution: Tool call this message tracks, for tool messages

        Returns:
            The new message ID
        """
        message = Message(
            id=gen_id("msg_"),
            role=MessageRole(role),
            content=content,
            reasoning=reasoning,
            timestamp=time.time(),
            tool_execution=tool_execution,
        )
        self._messages.append(message)
        logger.debug("Added %s message %s", message.role.value, message.id)
        return message.id

    def get(self, message_id: str) -> Message:
        """
        Get a message by ID.

        Raises:
            NotFoundError: If no message has that ID
        """
        for message in self._messages:
            if message.id == message_id:
                return message
        raise NotFoundError("Message", message_id)

    def find_by_tool_execution(self, execution_id: str) -> Message | None:
        """Find the tool message tracking a given ToolExecution."""
        for message in reversed(self._messages):
            if message.tool_execution is not None and message.tool_execution.id == execution_id:
                return message
        return None

    def clear(self) -> None:
        self._messages.clear()
