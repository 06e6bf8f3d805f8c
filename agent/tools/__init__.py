"""Tool-side helpers for the agent."""

from .read_tracker import (
    READ_BEFORE_EDIT_ERROR,
    ReadBeforeEditValidator,
    ReadTracker,
    canonicalize_path,
)

__all__ = [
    "READ_BEFORE_EDIT_ERROR",
    "ReadBeforeEditValidator",
    "ReadTracker",
    "canonicalize_path",
]
