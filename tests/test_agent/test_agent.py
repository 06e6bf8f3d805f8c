"""Tests for the reference agent loop."""

import asyncio
import json
from typing import Any

import httpx
import pytest

from agent.agent import INTERRUPTED_TOOL_CONTENT, Agent
from agent.providers import Completion, ToolCall
from agent.tools.read_tracker import ReadTracker
from core.client import ToolCallbacks
from core.controller import RequestController
from core.exceptions import ProviderAPIError, RequestAbortedError
from core.models import ApiUsage, ToolResult
from core.permissions import ApprovalDecision


def final(text: str, reasoning: str | None = None, completion_tokens: int = 0) -> Completion:
    return Completion(
        content=text,
        reasoning=reasoning,
        usage=ApiUsage(completion_tokens=completion_tokens) if completion_tokens else None,
    )


def calls(*tool_calls: ToolCall, content: str | None = None) -> Completion:
    return Completion(content=content, tool_calls=list(tool_calls))


def call(name: str, args: dict[str, Any] | str, call_id: str = "call_1") -> ToolCall:
    arguments = args if isinstance(args, str) else json.dumps(args)
    return ToolCall(id=call_id, name=name, arguments=arguments)


class Recorder:
    """Collects callback invocations; approval and iteration answers are scripted."""

    def __init__(self, approve: bool = True, auto_approve_session: bool = False, keep_going: bool = False):
        self.events: list[tuple] = []
        self.approve = approve
        self.auto_approve_session = auto_approve_session
        self.keep_going = keep_going

    def callbacks(self, with_gates: bool = True) -> ToolCallbacks:
        return ToolCallbacks(
            on_thinking_text=lambda text, reasoning=None: self.events.append(("thinking", text, reasoning)),
            on_final_message=lambda text, reasoning=None: self.events.append(("final", text, reasoning)),
            on_tool_start=lambda name, args: self.events.append(("start", name, args)),
            on_tool_end=lambda name, result: self.events.append(("end", name, result)),
            on_api_usage=lambda usage: self.events.append(("usage", usage.completion_tokens)),
            on_tool_approval=self._approval if with_gates else None,
            on_max_iterations=self._max_iterations if with_gates else None,
        )

    async def _approval(self, name: str, args: dict[str, Any]) -> ApprovalDecision:
        self.events.append(("approval", name))
        return ApprovalDecision(approved=self.approve, auto_approve_session=self.auto_approve_session)

    async def _max_iterations(self, n: int) -> bool:
        self.events.append(("max_iterations", n))
        answer = self.keep_going
        self.keep_going = False
        return answer

    def kinds(self) -> list[str]:
        return [e[0] for e in self.events]

    def ends(self) -> list[ToolResult]:
        return [e[2] for e in self.events if e[0] == "end"]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def agent(fake_provider, fake_executor, recorder) -> Agent:
    agent = Agent(fake_provider, fake_executor, retry_delay=0)
    agent.set_tool_callbacks(recorder.callbacks())
    return agent


class TestConversation:
    """Tests for plain turns."""

    @pytest.mark.asyncio
    async def test_final_message(self, agent, fake_provider, recorder):
        """A completion without tool calls ends the turn with a final message."""
        fake_provider.responses = [final("Hello!", reasoning="hm", completion_tokens=12)]
        await agent.chat("Hi")

        assert recorder.events == [("usage", 12), ("final", "Hello!", "hm")]
        assert agent.history == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
        ]

    @pytest.mark.asyncio
    async def test_system_message_prepended(self, fake_provider, fake_executor):
        """The system message is sent first but not kept in history."""
        agent = Agent(fake_provider, fake_executor, system_message="Be brief.")
        fake_provider.responses = [final("ok")]
        await agent.chat("Hi")

        assert fake_provider.requests[0][0] == {"role": "system", "content": "Be brief."}
        assert agent.history[0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_clear_history(self, agent, fake_provider):
        """Clearing drops the conversation."""
        fake_provider.responses = [final("ok")]
        await agent.chat("Hi")
        agent.clear_history()

        assert agent.history == []

    def test_set_api_key(self, agent, fake_provider):
        """The key goes to the provider."""
        agent.set_api_key("sk-test")

        assert fake_provider.api_key == "sk-test"


class TestToolCalls:
    """Tests for running tool calls."""

    @pytest.mark.asyncio
    async def test_safe_tool_runs_without_approval(self, agent, fake_provider, fake_executor, recorder):
        """Safe tools run straight away and their output goes back to the model."""
        fake_provider.responses = [
            calls(call("read_file", {"file_path": "/src/a.py"}), content="Reading"),
            final("Done"),
        ]
        await agent.chat("read a.py")

        assert recorder.kinds() == ["thinking", "start", "end", "final"]
        assert fake_executor.calls == [("read_file", {"file_path": "/src/a.py"})]
        assert recorder.ends()[0].success is True
        tool_message = fake_provider.requests[1][-1]
        assert tool_message == {"role": "tool", "tool_call_id": "call_1", "content": "read_file ok"}

    @pytest.mark.asyncio
    async def test_prefix_stripped(self, agent, fake_provider, fake_executor, recorder):
        """Namespaced tool names are reported without the prefix."""
        fake_provider.responses = [calls(call("repo_browser.list_files", {"directory": "."})), final("ok")]
        await agent.chat("ls")

        assert recorder.events[0] == ("start", "list_files", {"directory": "."})
        assert fake_executor.calls[0][0] == "list_files"

    @pytest.mark.asyncio
    async def test_unparseable_arguments_skipped(self, agent, fake_provider, fake_executor, recorder):
        """Truncated JSON arguments skip the tool without ending it."""
        fake_provider.responses = [calls(call("read_file", '{"file_path": "/src/a')), final("ok")]
        await agent.chat("read")

        assert recorder.kinds() == ["final"]
        assert fake_executor.calls == []
        assert fake_provider.requests[1][-1]["content"].startswith("Error: Invalid JSON arguments for read_file")

    @pytest.mark.asyncio
    async def test_executor_exception_becomes_failure(self, agent, fake_provider, fake_executor, recorder):
        """Executor exceptions are reported as failed results."""
        fake_executor.results["read_file"] = OSError("disk on fire")
        fake_provider.responses = [calls(call("read_file", {"file_path": "/a"})), final("ok")]
        await agent.chat("read")

        result = recorder.ends()[0]
        assert result.success is False
        assert result.error == "disk on fire"
        assert fake_provider.requests[1][-1]["content"] == "Error: disk on fire"

    @pytest.mark.asyncio
    async def test_dict_results_accepted(self, agent, fake_provider, fake_executor, recorder):
        """Executors may return plain dicts."""
        fake_executor.results["list_files"] = {"success": True, "content": "a.py\nb.py"}
        fake_provider.responses = [calls(call("list_files", {"directory": "."})), final("ok")]
        await agent.chat("ls")

        assert recorder.ends()[0].content == "a.py\nb.py"


class TestApproval:
    """Tests for gating inside the loop."""

    @pytest.mark.asyncio
    async def test_approved_tool_runs(self, agent, fake_provider, fake_executor, recorder):
        """Approval-required tools ask first, then run."""
        fake_provider.responses = [calls(call("create_file", {"file_path": "/new.py", "content": "x"})), final("ok")]
        await agent.chat("create")

        assert recorder.kinds() == ["start", "approval", "end", "final"]
        assert fake_executor.calls[0][0] == "create_file"

    @pytest.mark.asyncio
    async def test_rejected_tool(self, fake_provider, fake_executor):
        """A rejection ends the tool as user-rejected without running it."""
        recorder = Recorder(approve=False)
        agent = Agent(fake_provider, fake_executor)
        agent.set_tool_callbacks(recorder.callbacks())
        fake_provider.responses = [calls(call("delete_file", {"file_path": "/a"})), final("ok")]
        await agent.chat("delete")

        result = recorder.ends()[0]
        assert result.success is False
        assert result.user_rejected is True
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_auto_approve_skips_approval_for_edits(self, agent, fake_provider, recorder):
        """With auto-approve on, edit_file is not sent for approval."""
        agent.set_session_auto_approve(True)
        agent.read_tracker.mark_read("/src/a.py")
        fake_provider.responses = [
            calls(call("edit_file", {"file_path": "/src/a.py", "old_text": "a", "new_text": "b"})),
            final("ok"),
        ]
        await agent.chat("edit")

        assert "approval" not in recorder.kinds()

    @pytest.mark.asyncio
    async def test_auto_approve_never_covers_dangerous(self, agent, fake_provider, recorder):
        """Dangerous tools are gated even with auto-approve on."""
        agent.set_session_auto_approve(True)
        fake_provider.responses = [calls(call("execute_command", {"command": "ls"})), final("ok")]
        await agent.chat("run")

        assert ("approval", "execute_command") in recorder.events

    @pytest.mark.asyncio
    async def test_auto_approve_session_decision_sticks(self, fake_provider, fake_executor):
        """Approving with auto_approve_session lifts later approvals."""
        recorder = Recorder(auto_approve_session=True)
        agent = Agent(fake_provider, fake_executor)
        agent.set_tool_callbacks(recorder.callbacks())
        fake_provider.responses = [
            calls(call("create_file", {"file_path": "/a", "content": "x"}, "c1")),
            calls(call("create_file", {"file_path": "/b", "content": "y"}, "c2")),
            final("ok"),
        ]
        await agent.chat("create two")

        assert recorder.kinds().count("approval") == 1
        assert agent.session_auto_approve is True

    @pytest.mark.asyncio
    async def test_no_approval_handler_refuses(self, fake_provider, fake_executor, recorder):
        """Without an approval callback gated tools are refused."""
        agent = Agent(fake_provider, fake_executor)
        agent.set_tool_callbacks(recorder.callbacks(with_gates=False))
        fake_provider.responses = [calls(call("delete_file", {"file_path": "/a"})), final("ok")]
        await agent.chat("delete")

        assert fake_executor.calls == []
        assert recorder.ends()[0].success is False


class TestReadBeforeEdit:
    """Tests for read-before-edit enforcement."""

    @pytest.mark.asyncio
    async def test_edit_without_read_fails(self, agent, fake_provider, fake_executor, recorder):
        """Editing an unread file fails before approval."""
        fake_provider.responses = [
            calls(call("edit_file", {"file_path": "/src/a.py", "old_text": "a", "new_text": "b"})),
            final("ok"),
        ]
        await agent.chat("edit")

        assert recorder.kinds() == ["start", "end", "final"]
        result = recorder.ends()[0]
        assert result.success is False
        assert result.error == "File must be read before editing. Use read_file tool first: /src/a.py"
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_read_then_edit(self, agent, fake_provider, fake_executor, recorder):
        """A successful read_file unlocks edits to that file."""
        fake_provider.responses = [
            calls(call("read_file", {"file_path": "/src/a.py"}, "c1")),
            calls(call("edit_file", {"file_path": "/src/../src/a.py", "old_text": "a", "new_text": "b"}, "c2")),
            final("ok"),
        ]
        await agent.chat("read then edit")

        assert [name for name, _ in fake_executor.calls] == ["read_file", "edit_file"]
        assert all(result.success for result in recorder.ends())

    @pytest.mark.asyncio
    async def test_failed_read_does_not_count(self, agent, fake_provider, fake_executor):
        """Only successful reads are tracked."""
        fake_executor.results["read_file"] = ToolResult(success=False, error="missing")
        fake_provider.responses = [calls(call("read_file", {"file_path": "/a"})), final("ok")]
        await agent.chat("read")

        assert "/a" not in agent.read_tracker

    @pytest.mark.asyncio
    async def test_shared_tracker(self, fake_provider, fake_executor):
        """A tracker passed in is the one updated."""
        tracker = ReadTracker()
        agent = Agent(fake_provider, fake_executor, read_tracker=tracker)
        fake_provider.responses = [calls(call("read_file", {"file_path": "/a"})), final("ok")]
        await agent.chat("read")

        assert tracker.is_read("/a")


class TestIterations:
    """Tests for the iteration ceiling."""

    @pytest.mark.asyncio
    async def test_stop_at_limit(self, fake_provider, fake_executor, recorder):
        """A stop answer ends the loop quietly."""
        agent = Agent(fake_provider, fake_executor, max_iterations=2)
        agent.set_tool_callbacks(recorder.callbacks())
        fake_provider.responses = [
            calls(call("read_file", {"file_path": "/a"}, "c1")),
            calls(call("read_file", {"file_path": "/b"}, "c2")),
        ]
        await agent.chat("loop")

        assert recorder.events[-1] == ("max_iterations", 2)
        assert "final" not in recorder.kinds()
        assert len(fake_provider.requests) == 2

    @pytest.mark.asyncio
    async def test_continue_resets_budget(self, fake_provider, fake_executor):
        """Continuing grants another full budget."""
        recorder = Recorder(keep_going=True)
        agent = Agent(fake_provider, fake_executor, max_iterations=1)
        agent.set_tool_callbacks(recorder.callbacks())
        fake_provider.responses = [
            calls(call("read_file", {"file_path": "/a"}, "c1")),
            calls(call("read_file", {"file_path": "/b"}, "c2")),
            final("never reached"),
        ]
        await agent.chat("loop")

        assert [e for e in recorder.events if e[0] == "max_iterations"] == [
            ("max_iterations", 1),
            ("max_iterations", 1),
        ]
        assert len(fake_provider.requests) == 2


class TestRetries:
    """Tests for provider error handling."""

    @pytest.mark.asyncio
    async def test_transient_errors_retried(self, agent, fake_provider, recorder):
        """Server errors are retried."""
        fake_provider.responses = [
            ProviderAPIError(500, {"error": {"message": "oops"}}),
            httpx.ConnectError("refused"),
            final("ok"),
        ]
        await agent.chat("Hi")

        assert recorder.kinds() == ["final"]
        assert len(fake_provider.requests) == 3

    @pytest.mark.asyncio
    async def test_unauthorized_not_retried(self, agent, fake_provider):
        """A 401 is raised at once."""
        fake_provider.responses = [ProviderAPIError(401, {"error": {"message": "Invalid API key"}}), final("ok")]

        with pytest.raises(ProviderAPIError) as exc_info:
            await agent.chat("Hi")

        assert exc_info.value.status == 401
        assert len(fake_provider.requests) == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, fake_provider, fake_executor):
        """The last error propagates once retries run out."""
        agent = Agent(fake_provider, fake_executor, max_retries=1, retry_delay=0)
        fake_provider.responses = [ProviderAPIError(503), ProviderAPIError(503), final("ok")]

        with pytest.raises(ProviderAPIError):
            await agent.chat("Hi")

        assert len(fake_provider.requests) == 2


class SlowProvider:
    """Provider that blocks until cancelled."""

    def __init__(self):
        self.started = asyncio.Event()

    async def complete(self, messages, tools):
        self.started.set()
        await asyncio.Event().wait()

    def set_api_key(self, api_key: str) -> None:
        pass


class TestInterrupt:
    """Tests for cancellation."""

    @pytest.mark.asyncio
    async def test_interrupt_cancels_inflight_call(self, fake_executor, recorder):
        """Interrupting aborts the provider call with RequestAbortedError."""
        provider = SlowProvider()
        agent = Agent(provider, fake_executor)
        agent.set_tool_callbacks(recorder.callbacks())

        task = asyncio.create_task(agent.chat("Hi"))
        await provider.started.wait()
        agent.interrupt()

        with pytest.raises(RequestAbortedError):
            await task

    @pytest.mark.asyncio
    async def test_interrupt_during_approval(self, fake_provider, fake_executor):
        """A rejection caused by an interrupt aborts instead of reporting a rejection."""
        recorder = Recorder(approve=False)
        agent = Agent(fake_provider, fake_executor)
        callbacks = recorder.callbacks()

        async def interrupting_approval(name, args):
            agent.interrupt()
            return ApprovalDecision(approved=False)

        callbacks.on_tool_approval = interrupting_approval
        agent.set_tool_callbacks(callbacks)
        fake_provider.responses = [
            calls(call("delete_file", {"file_path": "/a"}, "c1"), call("read_file", {"file_path": "/b"}, "c2")),
        ]

        with pytest.raises(RequestAbortedError):
            await agent.chat("delete")

        assert "end" not in recorder.kinds()
        assert fake_executor.calls == []
        # Open tool calls are answered so the next turn is valid
        tool_messages = [m for m in agent.history if m["role"] == "tool"]
        assert [m["tool_call_id"] for m in tool_messages] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_chat_after_interrupt(self, fake_provider, fake_executor, recorder):
        """The interrupt flag is reset for the next message."""
        agent = Agent(fake_provider, fake_executor)
        agent.set_tool_callbacks(recorder.callbacks())
        agent.interrupt()
        fake_provider.responses = [final("fresh")]
        await agent.chat("again")

        assert recorder.events[-1] == ("final", "fresh", None)

    @pytest.mark.asyncio
    async def test_new_chat_does_not_revive_interrupted_one(self, fake_provider, fake_executor):
        """An interrupted chat stays aborted even when a new chat starts before it wakes."""
        release = asyncio.Event()
        recorder = Recorder()
        callbacks = recorder.callbacks()

        async def held_approval(name, args):
            await release.wait()
            return ApprovalDecision(approved=True)

        callbacks.on_tool_approval = held_approval
        agent = Agent(fake_provider, fake_executor)
        agent.set_tool_callbacks(callbacks)
        fake_provider.responses = [
            calls(call("delete_file", {"file_path": "/a"}, "c1")),
            final("second answer"),
        ]

        first = asyncio.create_task(agent.chat("first"))
        for _ in range(100):
            if "start" in recorder.kinds():
                break
            await asyncio.sleep(0)
        agent.interrupt()
        await agent.chat("second")
        release.set()

        with pytest.raises(RequestAbortedError):
            await first

        assert fake_executor.calls == []
        assert len(fake_provider.requests) == 2
        assert "end" not in recorder.kinds()
        assert [m["role"] for m in agent.history] == ["user", "assistant", "tool", "user", "assistant"]
        assert agent.history[2]["content"] == INTERRUPTED_TOOL_CONTENT


class TestWithController:
    """Tests running the agent under a request controller."""

    @pytest.mark.asyncio
    async def test_message_right_after_interrupt(self, fake_provider, fake_executor):
        """Interrupting during approval and sending at once leaves only the new request's output."""
        agent = Agent(fake_provider, fake_executor)
        controller = RequestController(agent)
        fake_provider.responses = [
            calls(call("delete_file", {"file_path": "/a"}, "c1")),
            final("second answer"),
            final("old loop answer"),
        ]

        first = asyncio.create_task(controller.send_message("first"))
        for _ in range(100):
            if controller.pending_approval is not None:
                break
            await asyncio.sleep(0)
        assert controller.pending_approval is not None

        controller.interrupt_request()
        await controller.send_message("second")
        await first

        assert len(fake_provider.requests) == 2
        assert fake_executor.calls == []
        contents = [(m.role.value, m.content) for m in controller.messages]
        assert contents[-2:] == [("user", "second"), ("assistant", "second answer")]
        assert ("assistant", "old loop answer") not in contents
        assert [m["role"] for m in agent.history] == ["user", "assistant", "tool", "user", "assistant"]
        assert fake_provider.requests[1][-1] == {"role": "user", "content": "second"}
        assert not controller.is_processing
