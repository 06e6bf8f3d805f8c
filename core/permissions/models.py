"""Permission system models."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from ..models import gen_id

T = TypeVar("T")


class ToolCategory(str, Enum):
    """Static gating class of a tool name."""

    SAFE = "safe"
    APPROVAL_REQUIRED = "approval_required"
    DANGEROUS = "dangerous"


class ApprovalDecision(BaseModel):
    """Human answer to a pending tool approval."""

    approved: bool
    auto_approve_session: bool = False


@dataclass
class PendingDecision(Generic[T]):
    """
    A suspended continuation waiting for a human decision.

    The future is resolved at most once; later resolutions are ignored.
    """

    future: asyncio.Future
    id: str = field(default_factory=lambda: gen_id("gate_"))
    requested_at: float = field(default_factory=time.time)

    @property
    def resolved(self) -> bool:
        return self.future.done()

    def resolve(self, value: T) -> bool:
        """Resolve the waiter. Returns False if it was already resolved."""
        if self.future.done():
            return False
        self.future.set_result(value)
        return True


@dataclass
class PendingApproval(PendingDecision[ApprovalDecision]):
    tool_name: str = ""
    tool_args: dict[str, Any] = field(default_factory=dict)


@dataclass
class PendingMaxIterations(PendingDecision[bool]):
    max_iterations: int = 0
