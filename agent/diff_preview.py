"""
Diff previews for file-changing tool calls.

Builds line-level hunks for ``create_file`` and ``edit_file`` so a human can
review a change before approving it, or review an already-applied change
later (a historical preview, rebuilt from the recorded arguments only).
"""

import asyncio
import logging
from difflib import SequenceMatcher
from pathlib import Path
from typing import Any, Awaitable, Callable

from core.models import DiffHunk, DiffLine, DiffPreview

from .tools.read_tracker import ReadBeforeEditValidator

logger = logging.getLogger(__name__)

# Lines of unchanged context around each hunk
CONTEXT_LINES = 3

ERROR_NO_FILE_PATH = "No file path provided"
ERROR_UNSUPPORTED_TOOL = "Diff preview is not available for {}"

PREVIEW_TOOLS = frozenset({"create_file", "edit_file"})

TextReader = Callable[[str], Awaitable[str]]


async def read_text_file(file_path: str) -> str:
    """Read a UTF-8 file without blocking the event loop."""
    return await asyncio.to_thread(Path(file_path).read_text, encoding="utf-8")


def build_hunks(old_content: str, new_content: str) -> list[DiffHunk]:
    """
    Line-level hunks between two texts, unified-diff style.

    Args:
        old_content: Text before the change
        new_content: Text after the change

    Returns:
        Hunks with CONTEXT_LINES of context; empty when the texts are equal
    """
    if old_content == new_content:
        return []

    old_lines = old_content.splitlines()
    new_lines = new_content.splitlines()
    matcher = SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    hunks: list[DiffHunk] = []
    for group in matcher.get_grouped_opcodes(CONTEXT_LINES):
        first, last = group[0], group[-1]
        old_count = last[2] - first[1]
        new_count = last[4] - first[3]
        hunk = DiffHunk(
            # Empty ranges point at the line before, as in unified diffs
            old_start=first[1] + 1 if old_count else first[1],
            old_count=old_count,
            new_start=first[3] + 1 if new_count else first[3],
            new_count=new_count,
        )
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                for offset, text in enumerate(old_lines[i1:i2]):
                    hunk.lines.append(
                        DiffLine(
                            kind="context",
                            text=text,
                            old_lineno=i1 + offset + 1,
                            new_lineno=j1 + offset + 1,
                        )
                    )
                continue
            for offset, text in enumerate(old_lines[i1:i2]):
                hunk.lines.append(DiffLine(kind="removed", text=text, old_lineno=i1 + offset + 1))
            for offset, text in enumerate(new_lines[j1:j2]):
                hunk.lines.append(DiffLine(kind="added", text=text, new_lineno=j1 + offset + 1))
        hunks.append(hunk)

    return hunks


def _replace(content: str, old: str, new: str, replace_all: bool) -> str:
    return content.replace(old, new) if replace_all else content.replace(old, new, 1)


class DiffPreviewGenerator:
    """Produces DiffPreview values for create_file and edit_file calls."""

    def __init__(
        self,
        validator: ReadBeforeEditValidator | None = None,
        reader: TextReader = read_text_file,
    ):
        """
        Initialize the generator.

        Args:
            validator: Read-before-edit check for live edit previews
            reader: Async text reader used for the live baseline
        """
        self.validator = validator or ReadBeforeEditValidator()
        self._reader = reader

    async def generate(
        self,
        tool_name: str,
        tool_args: dict[str, Any],
        is_historical: bool = False,
    ) -> DiffPreview:
        """
        Preview the change a tool call makes (or made).

        Args:
            tool_name: ``create_file`` or ``edit_file``
            tool_args: The call's arguments
            is_historical: True for an already-applied call; skips the
                read-before-edit check and all file I/O

        Returns:
            A ready, no_changes or error DiffPreview
        """
        file_path = tool_args.get("file_path")
        if not isinstance(file_path, str) or not file_path:
            return DiffPreview.failed(ERROR_NO_FILE_PATH)
        if tool_name not in PREVIEW_TOOLS:
            return DiffPreview.failed(ERROR_UNSUPPORTED_TOOL.format(tool_name), file_path)

        try:
            if is_historical:
                before, after = self._historical_texts(tool_name, tool_args)
            else:
                if tool_name == "edit_file" and not self.validator.validate(file_path):
                    return DiffPreview.failed(self.validator.describe_violation(file_path), file_path)
                before, after = await self._live_texts(tool_name, file_path, tool_args)
        except (OSError, ValueError) as e:
            logger.warning("Diff preview failed for %s: %s", file_path, e)
            return DiffPreview.failed(f"Error generating diff: {e}", file_path)

        if before is None or after is None:
            return DiffPreview.no_changes(file_path)
        hunks = build_hunks(before, after)
        if not hunks:
            return DiffPreview.no_changes(file_path)
        return DiffPreview(state="ready", file_path=file_path, hunks=hunks)

    async def _live_texts(
        self, tool_name: str, file_path: str, tool_args: dict[str, Any]
    ) -> tuple[str | None, str | None]:
        content = tool_args.get("content")
        if tool_name == "create_file":
            return "", content if isinstance(content, str) else None

        baseline = await self._read_baseline(file_path)
        old_text = tool_args.get("old_text")
        new_text = tool_args.get("new_text")

        if old_text is None and new_text is None:
            if isinstance(content, str):
                return baseline, content
            return None, None

        old_text = old_text or ""
        new_text = new_text or ""
        replace_all = bool(tool_args.get("replace_all", False))

        if old_text and old_text in baseline:
            return baseline, _replace(baseline, old_text, new_text, replace_all)
        if new_text and new_text in baseline:
            # The edit is already on disk: rebuild the prior state
            return _replace(baseline, new_text, old_text, replace_all), baseline
        return None, None

    async def _read_baseline(self, file_path: str) -> str:
        try:
            return await self._reader(file_path)
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s for diff preview: %s", file_path, e)
            return ""

    @staticmethod
    def _historical_texts(tool_name: str, tool_args: dict[str, Any]) -> tuple[str | None, str | None]:
        content = tool_args.get("content")
        if tool_name == "create_file":
            return "", content if isinstance(content, str) else None

        old_text = tool_args.get("old_text")
        new_text = tool_args.get("new_text")
        if isinstance(old_text, str) and isinstance(new_text, str):
            return old_text, new_text
        if old_text is None and new_text is None and isinstance(content, str):
            return "", content
        return None, None
