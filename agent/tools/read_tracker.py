"""
Read-before-edit tracking.

Records which files were read in the current session and refuses edit
previews and edits for files that were not. Paths are compared in their
canonical absolute form, so ``/a/../a/f.txt`` and ``/a/f.txt`` match.
"""

import logging
import os
from typing import Container, Iterable, Iterator

logger = logging.getLogger(__name__)

READ_BEFORE_EDIT_ERROR = "File must be read before editing. Use read_file tool first: {}"


def canonicalize_path(file_path: str) -> str:
    """
    Normalize a file path to its canonical absolute form.

    Resolves ``.``/``..`` and symlinks; paths that do not exist are still
    normalized.

    Args:
        file_path: Path to normalize (relative or absolute)

    Returns:
        Canonical absolute path
    """
    abs_path = os.path.abspath(file_path)
    try:
        return os.path.realpath(abs_path)
    except (OSError, RuntimeError):
        # Symlink loop: fall back to the lexical form
        return abs_path


class ReadTracker:
    """Session-scoped set of canonical paths that have been read."""

    def __init__(self, paths: Iterable[str] = ()):
        self._paths: set[str] = {canonicalize_path(p) for p in paths}

    def __contains__(self, file_path: object) -> bool:
        return isinstance(file_path, str) and canonicalize_path(file_path) in self._paths

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def mark_read(self, file_path: str) -> None:
        """Record a successful read (or creation) of ``file_path``."""
        normalized = canonicalize_path(file_path)
        self._paths.add(normalized)
        logger.debug("Marked as read: %s", normalized)

    def is_read(self, file_path: str) -> bool:
        return file_path in self

    def forget(self, file_path: str) -> None:
        """Stop tracking one file, e.g. after it was deleted."""
        self._paths.discard(canonicalize_path(file_path))

    def clear(self) -> None:
        self._paths.clear()


class ReadBeforeEditValidator:
    """
    Gate for edit operations.

    With no tracker installed every path validates. Historical previews of
    already-executed edits must not call this at all.
    """

    def __init__(self, tracker: Container[str] | None = None):
        self._tracker = tracker

    @property
    def tracker(self) -> Container[str] | None:
        return self._tracker

    def set_tracker(self, tracker: Container[str] | None) -> None:
        """Install a tracker (a ReadTracker or any set of canonical paths), or None."""
        self._tracker = tracker

    def validate(self, file_path: str) -> bool:
        """True if no tracker is installed or the canonical path was read."""
        if self._tracker is None:
            return True
        return canonicalize_path(file_path) in self._tracker

    def describe_violation(self, file_path: str) -> str:
        """Error text for ``file_path``, echoing the path exactly as given."""
        return READ_BEFORE_EDIT_ERROR.format(file_path)
