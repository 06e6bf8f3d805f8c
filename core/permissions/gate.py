"""
Human decision gates.

A gate suspends the request lifecycle on an asyncio future until the
presentation layer answers. There is no timeout: a gate only ends through a
decision or through ``cancel_pending`` when the request is interrupted.
"""

import asyncio
import logging
from typing import Any, Callable, Generic, TypeVar

from ..events import (
    APPROVAL_REQUESTED,
    APPROVAL_RESOLVED,
    Event,
    EventBus,
    NullEventBus,
)
from ..exceptions import InvalidOperationError
from .models import ApprovalDecision, PendingApproval, PendingDecision

logger = logging.getLogger(__name__)

T = TypeVar("T")

Hook = Callable[[], None]


class HumanGate(Generic[T]):
    """
    Shared suspend/resolve machinery for the approval and iteration gates.

    At most one decision is pending per gate. The pause hook fires when the
    gate suspends and the resume hook fires when it is resolved, so a metrics
    tracker can exclude the time spent waiting on a human.
    """

    event_prefix = "gate"
    requested_event = "gate.requested"
    resolved_event = "gate.resolved"

    def __init__(
        self,
        on_pause: Hook | None = None,
        on_resume: Hook | None = None,
        event_bus: EventBus | None = None,
    ):
        self._on_pause = on_pause
        self._on_resume = on_resume
        self._event_bus: EventBus = event_bus or NullEventBus()
        self._pending: PendingDecision | None = None

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    async def _suspend(self, pending: PendingDecision, properties: dict[str, Any]) -> T:
        if self._pending is not None:
            raise InvalidOperationError(
                f"A {self.event_prefix} decision is already pending: {self._pending.id}"
            )

        self._pending = pending
        if self._on_pause:
            self._on_pause()

        await self._event_bus.publish(
            Event(
                type=self.requested_event,
                properties={"id": pending.id, **properties},
            )
        )

        try:
            return await pending.future
        finally:
            # Waiter went away without a decision (task cancelled)
            if self._pending is pending:
                self._take_pending()

    def _take_pending(self) -> PendingDecision | None:
        pending = self._pending
        if pending is None:
            logger.warning("No pending %s decision to resolve", self.event_prefix)
            return None
        self._pending = None
        if self._on_resume:
            self._on_resume()
        return pending

    async def _announce(self, pending: PendingDecision, properties: dict[str, Any]) -> None:
        await self._event_bus.publish(
            Event(
                type=self.resolved_event,
                properties={"id": pending.id, **properties},
            )
        )


class ApprovalGate(HumanGate[ApprovalDecision]):
    """
    Suspends a gated tool call until a human approves or rejects it.

    Also owns the sticky session auto-approve flag: an approval given with
    ``auto_approve_session=True`` turns it on for the rest of the session.
    """

    event_prefix = "approval"
    requested_event = APPROVAL_REQUESTED
    resolved_event = APPROVAL_RESOLVED

    def __init__(
        self,
        on_pause: Hook | None = None,
        on_resume: Hook | None = None,
        on_auto_approve: Callable[[bool], None] | None = None,
        event_bus: EventBus | None = None,
        auto_approve: bool = False,
    ):
        """
        Initialize the approval gate.

        Args:
            on_pause: Called when a decision is requested
            on_resume: Called when the decision arrives
            on_auto_approve: Called with the new value whenever auto-approve changes
            event_bus: Event bus for approval events
            auto_approve: Initial session auto-approve value
        """
        super().__init__(on_pause=on_pause, on_resume=on_resume, event_bus=event_bus)
        self._on_auto_approve = on_auto_approve
        self.session_auto_approve = auto_approve

    @property
    def pending(self) -> PendingApproval | None:
        return self._pending  # type: ignore[return-value]

    async def request_approval(self, tool_name: str, tool_args: dict[str, Any]) -> ApprovalDecision:
        """
        Wait for a human decision on a tool call.

        Args:
            tool_name: Tool awaiting approval
            tool_args: Arguments it will be called with

        Returns:
            The decision; ``approved=False`` if the request was interrupted

        Raises:
            InvalidOperationError: If another approval is already pending
        """
        pending = PendingApproval(
            future=asyncio.get_running_loop().create_future(),
            tool_name=tool_name,
            tool_args=dict(tool_args),
        )
        logger.info("Waiting for approval of %s (%s)", tool_name, pending.id)

        decision = await self._suspend(
            pending, {"tool_name": tool_name, "tool_args": pending.tool_args}
        )

        logger.info(
            "Approval for %s resolved: approved=%s auto_approve_session=%s",
            tool_name,
            decision.approved,
            decision.auto_approve_session,
        )
        await self._announce(pending, decision.model_dump())
        return decision

    def decide(self, approved: bool, auto_approve_session: bool = False) -> bool:
        """
        Resolve the pending approval.

        Args:
            approved: Whether the tool may run
            auto_approve_session: Turn on session auto-approve as well

        Returns:
            True if a pending approval was resolved
        """
        pending = self._take_pending()
        if pending is None:
            return False
        if auto_approve_session:
            self.set_auto_approve(True)
        return pending.resolve(
            ApprovalDecision(approved=approved, auto_approve_session=auto_approve_session)
        )

    def cancel_pending(self) -> bool:
        """Reject any pending approval so its waiter does not hang."""
        if self._pending is None:
            return False
        logger.debug("Force-rejecting pending approval %s", self._pending.id)
        return self.decide(approved=False)

    def set_auto_approve(self, enabled: bool) -> None:
        self.session_auto_approve = enabled
        if self._on_auto_approve:
            self._on_auto_approve(enabled)
