"""Diff preview models."""

from typing import Literal

from pydantic import BaseModel, Field

DiffLineKind = Literal["added", "removed", "context"]
DiffState = Literal["ready", "no_changes", "error"]

NO_CHANGES_TEXT = "No changes to show"
PREVIEW_HEADER = "Diff Preview:"

_MARKERS = {"added": "+", "removed": "-", "context": " "}


class DiffLine(BaseModel):
    kind: DiffLineKind
    text: str
    old_lineno: int | None = None
    new_lineno: int | None = None

    @property
    def marker(self) -> str:
        return _MARKERS[self.kind]


class DiffHunk(BaseModel):
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: list[DiffLine] = Field(default_factory=list)

    @property
    def header(self) -> str:
        return f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"


class DiffPreview(BaseModel):
    """Result of a preview: ready hunks, a no-op, or an error message."""

    state: DiffState
    file_path: str | None = None
    hunks: list[DiffHunk] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def failed(cls, error: str, file_path: str | None = None) -> "DiffPreview":
        return cls(state="error", error=error, file_path=file_path)

    @classmethod
    def no_changes(cls, file_path: str | None = None) -> "DiffPreview":
        return cls(state="no_changes", file_path=file_path)

    @property
    def additions(self) -> int:
        return sum(1 for h in self.hunks for line in h.lines if line.kind == "added")

    @property
    def deletions(self) -> int:
        return sum(1 for h in self.hunks for line in h.lines if line.kind == "removed")

    def render(self) -> str:
        """Plain-text rendering for terminals and logs."""
        if self.state == "error":
            return f"Error: {self.error}"
        if self.state == "no_changes":
            return NO_CHANGES_TEXT
        out = [PREVIEW_HEADER]
        for hunk in self.hunks:
            out.append(hunk.header)
            out.extend(f"{line.marker}{line.text}" for line in hunk.lines)
        return "\n".join(out)
