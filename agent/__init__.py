"""
Model-side collaborators of the request controller.

Exports the reference agent loop, the completion provider, the diff
preview generator and the session factory.
"""
from .agent import Agent, ToolExecutor
from .diff_preview import DiffPreviewGenerator, build_hunks
from .providers import ChatCompletionsProvider, Completion, CompletionProvider, ToolCall
from .session import Session, create_session
from .tools import ReadBeforeEditValidator, ReadTracker, canonicalize_path

__all__ = [
    # Agent loop
    "Agent",
    "ToolExecutor",
    # Providers
    "ChatCompletionsProvider",
    "Completion",
    "CompletionProvider",
    "ToolCall",
    # Previews
    "DiffPreviewGenerator",
    "build_hunks",
    # Read-before-edit
    "ReadTracker",
    "ReadBeforeEditValidator",
    "canonicalize_path",
    # Sessions
    "Session",
    "create_session",
]
