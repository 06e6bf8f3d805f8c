"""
Pause-aware request timing and completion-token counting.

The tracker is a stopwatch that the approval and iteration gates pause
while a human decides, so reported model time excludes that wait. It only
stores raw fields; ``elapsed_seconds`` and ``format_metrics`` derive the
numbers shown to a user.
"""

import logging
import time
from typing import Any, Callable

from .models import ApiUsage, TokenMetrics

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

THINKING_STATUS = "⚡ Thinking..."
PAUSED_STATUS = "⏸ Waiting for approval..."


class TokenMetricsTracker:
    """Pausable stopwatch plus a running completion-token count."""

    def __init__(self, clock: Clock = time.time):
        """
        Initialize the tracker.

        Args:
            clock: Returns the current time in seconds
        """
        self._clock = clock
        self._metrics = TokenMetrics()
        self._pause_started: float | None = None

    @property
    def metrics(self) -> TokenMetrics:
        """Snapshot of the current fields."""
        return self._metrics.model_copy()

    def start_request(self) -> None:
        """Reset everything and start timing a new request."""
        self._metrics = TokenMetrics(start_time=self._clock(), is_active=True)
        self._pause_started = None

    def add_api_tokens(self, usage: ApiUsage | dict[str, Any]) -> None:
        """
        Add the completion tokens of one API call.

        Prompt and total tokens are ignored. Usable before ``start_request``.
        """
        if not isinstance(usage, ApiUsage):
            usage = ApiUsage.model_validate(usage)
        if usage.completion_tokens < 0:
            logger.warning("Ignoring negative completion token count: %d", usage.completion_tokens)
            return
        self._metrics.completion_tokens += usage.completion_tokens

    def pause_metrics(self) -> None:
        # Paused implies active: nothing to pause outside a request
        if self._metrics.is_paused or not self._metrics.is_active:
            return
        self._pause_started = self._clock()
        self._metrics.is_paused = True

    def resume_metrics(self) -> None:
        if not self._metrics.is_paused:
            return
        self._fold_pause()

    def complete_request(self) -> None:
        """Stop timing. Re-callable; each call moves ``end_time`` forward."""
        if self._metrics.is_paused:
            self._fold_pause()
        self._metrics.end_time = self._clock()
        self._metrics.is_active = False
        self._metrics.is_paused = False

    def reset_metrics(self) -> None:
        self._metrics = TokenMetrics()
        self._pause_started = None

    def _fold_pause(self) -> None:
        if self._pause_started is not None:
            self._metrics.paused_time += max(0.0, self._clock() - self._pause_started)
        self._pause_started = None
        self._metrics.is_paused = False


def elapsed_seconds(metrics: TokenMetrics, now: float | None = None) -> float:
    """
    Model time of a request: wall time minus time spent paused.

    Uses ``now`` in place of the end time while the request is active.
    """
    if metrics.start_time is None:
        return 0.0
    end = metrics.end_time
    if end is None or metrics.is_active:
        end = time.time() if now is None else now
    return max(0.0, (end - metrics.start_time) - metrics.paused_time)


def format_metrics(metrics: TokenMetrics, now: float | None = None) -> str | None:
    """
    One-line summary such as ``5.0s | 100 tokens``.

    Returns None when there is nothing to show (inactive, no tokens).
    """
    if not metrics.is_active and metrics.completion_tokens == 0:
        return None
    line = f"{elapsed_seconds(metrics, now):.1f}s | {metrics.completion_tokens} tokens"
    if metrics.is_paused:
        return f"{line} | {PAUSED_STATUS}"
    if metrics.is_active:
        return f"{line} | {THINKING_STATUS}"
    return line
