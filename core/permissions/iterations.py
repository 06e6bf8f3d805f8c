"""
Iteration limits.

``IterationBudget`` counts agent turns on the model-client side;
``IterationGuard`` is the controller-side gate asking a human whether to
keep going once the budget is spent.
"""

import asyncio
import logging

from ..events import ITERATIONS_REQUESTED, ITERATIONS_RESOLVED
from .gate import HumanGate
from .models import PendingMaxIterations

logger = logging.getLogger(__name__)


class IterationBudget:
    """Counts turns against a configured ceiling."""

    def __init__(self, max_iterations: int):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {max_iterations}")
        self.max_iterations = max_iterations
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.max_iterations

    def consume(self) -> None:
        self.used += 1

    def reset(self) -> None:
        self.used = 0


class IterationGuard(HumanGate[bool]):
    """Suspends the request until a human decides to continue or stop."""

    event_prefix = "iterations"
    requested_event = ITERATIONS_REQUESTED
    resolved_event = ITERATIONS_RESOLVED

    @property
    def pending(self) -> PendingMaxIterations | None:
        return self._pending  # type: ignore[return-value]

    async def request_continue(self, max_iterations: int) -> bool:
        """
        Ask whether to keep iterating past ``max_iterations`` turns.

        Returns:
            True to continue, False to stop (also returned on interruption)
        """
        pending = PendingMaxIterations(
            future=asyncio.get_running_loop().create_future(),
            max_iterations=max_iterations,
        )
        logger.info("Reached %d iterations, waiting for decision", max_iterations)

        should_continue = await self._suspend(pending, {"max_iterations": max_iterations})

        logger.info("Iteration limit resolved: continue=%s", should_continue)
        await self._announce(pending, {"continue": should_continue})
        return should_continue

    def respond(self, should_continue: bool) -> bool:
        """
        Resolve the pending iteration decision.

        Returns:
            True if a pending decision was resolved
        """
        pending = self._take_pending()
        if pending is None:
            return False
        return pending.resolve(should_continue)

    def cancel_pending(self) -> bool:
        """Answer "stop" to any pending decision so its waiter does not hang."""
        if self._pending is None:
            return False
        logger.debug("Force-stopping pending iteration decision %s", self._pending.id)
        return self.respond(False)
