"""
Shared pytest fixtures for all tests.
"""
import logging
import tempfile
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterator

import pytest

from core.client import ToolCallbacks
from core.events import Event
from core.models import ToolResult


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_file(temp_dir: Path) -> Path:
    """Create a temporary file for testing."""
    file_path = temp_dir / "test_file.txt"
    file_path.write_text("Hello, World!\nThis is a test file.\nLine 3\n")
    return file_path


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables for testing."""
    # Set a test API key to avoid requiring real credentials
    monkeypatch.setenv("OPENAI_API_KEY", "test-key-123")
    return monkeypatch


@pytest.fixture
def restore_root_logger():
    """Undo root logger changes made by setup_logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


Script = Callable[[ToolCallbacks], Awaitable[None]]


class ScriptedClient:
    """ModelClient whose chat() runs a test-provided coroutine against the callbacks."""

    def __init__(self, script: Script | None = None):
        self.script = script
        self.callbacks = ToolCallbacks()
        self.chat_calls: list[str] = []
        self.auto_approve_values: list[bool] = []
        self.api_keys: list[str] = []
        self.clear_count = 0
        self.interrupt_count = 0

    async def chat(self, user_text: str) -> None:
        self.chat_calls.append(user_text)
        if self.script is not None:
            await self.script(self.callbacks)

    def set_tool_callbacks(self, callbacks: ToolCallbacks) -> None:
        self.callbacks = callbacks

    def set_session_auto_approve(self, enabled: bool) -> None:
        self.auto_approve_values.append(enabled)

    def set_api_key(self, api_key: str) -> None:
        self.api_keys.append(api_key)

    def clear_history(self) -> None:
        self.clear_count += 1

    def interrupt(self) -> None:
        self.interrupt_count += 1


@pytest.fixture
def scripted_client() -> ScriptedClient:
    return ScriptedClient()


class FakeProvider:
    """CompletionProvider returning scripted completions (or raising scripted errors)."""

    def __init__(self, responses: list[Any] | None = None):
        self.responses = list(responses or [])
        self.requests: list[list[dict[str, Any]]] = []
        self.api_key: str | None = None

    async def complete(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]):
        self.requests.append([dict(m) for m in messages])
        if not self.responses:
            raise AssertionError("FakeProvider ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


class FakeExecutor:
    """ToolExecutor recording calls; results come from ``results`` or default to success."""

    def __init__(self, results: dict[str, Any] | None = None):
        self.results = dict(results or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def execute(self, name: str, args: dict[str, Any]):
        self.calls.append((name, args))
        result = self.results.get(name)
        if isinstance(result, BaseException):
            raise result
        if result is None:
            return ToolResult(success=True, content=f"{name} ok")
        return result


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


class RecordingEventBus:
    """EventBus keeping every published event."""

    def __init__(self):
        self.events: list[Event] = []

    async def publish(self, event: Event) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()
