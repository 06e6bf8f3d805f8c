"""Tests for the session factory."""

import asyncio
import logging

import pytest

from agent.providers import ChatCompletionsProvider, Completion, ToolCall
from agent.session import create_session
from config import Config, ToolClassificationConfig

pytestmark = pytest.mark.usefixtures("restore_root_logger")


async def wait_until(predicate, attempts: int = 100) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class TestCreateSession:
    """Tests for wiring."""

    def test_default_provider_from_config(self, fake_executor, mock_env_vars):
        """Without a provider, an HTTP provider is built from the config."""
        session = create_session(fake_executor, Config(model="m", base_url="http://localhost:9/v1"))

        assert isinstance(session.provider, ChatCompletionsProvider)
        assert session.provider.model == "m"
        assert session.provider.base_url == "http://localhost:9/v1"

    def test_shared_read_tracker(self, fake_executor, fake_provider):
        """Agent, validator and diff preview share one read tracker."""
        session = create_session(fake_executor, provider=fake_provider)

        assert session.agent.read_tracker is session.read_tracker
        assert session.validator.tracker is session.read_tracker
        assert session.diff_preview.validator is session.validator

    def test_config_applied(self, fake_executor, fake_provider):
        """Config values reach the agent and controller."""
        config = Config(
            max_iterations=7,
            auto_approve=True,
            show_reasoning=False,
            tools=ToolClassificationConfig(safe=["read_file", "edit_file"], approval_required=[], dangerous=[]),
        )
        session = create_session(fake_executor, config, provider=fake_provider)

        assert session.agent.max_iterations == 7
        assert session.agent.session_auto_approve is True
        assert session.controller.session_auto_approve is True
        assert session.controller.show_reasoning is False
        assert not session.agent.classification.needs_approval("edit_file")

    def test_log_level_applied(self, fake_executor, fake_provider):
        """The configured log level is applied to the root logger."""
        create_session(fake_executor, Config(log_level="debug"), provider=fake_provider)

        assert logging.getLogger().level == logging.DEBUG


class TestEndToEnd:
    """A full request through controller, agent and metrics."""

    @pytest.mark.asyncio
    async def test_approval_round_trip(self, fake_executor, fake_provider, clock):
        """An approved create_file runs and the request completes with metrics."""
        fake_provider.responses = [
            Completion(
                content="Creating the file.",
                tool_calls=[ToolCall(id="c1", name="create_file", arguments='{"file_path": "/tmp/x.py", "content": "x = 1\\n"}')],
            ),
            Completion(content="Created."),
        ]
        session = create_session(fake_executor, provider=fake_provider)
        controller = session.controller

        task = asyncio.create_task(controller.send_message("make x.py"))
        await wait_until(lambda: controller.pending_approval is not None)

        assert session.metrics.metrics.is_paused
        preview = await session.diff_preview.generate("create_file", controller.pending_approval.tool_args)
        assert preview.render() == "Diff Preview:\n@@ -0,0 +1,1 @@\n+x = 1"

        controller.approve_tool_execution(True)
        await task

        assert [m.content for m in controller.messages] == [
            "make x.py",
            "Creating the file.",
            "✓ create_file completed successfully",
            "Created.",
        ]
        assert session.read_tracker.is_read("/tmp/x.py")
        assert session.metrics.metrics.is_active is False

    @pytest.mark.asyncio
    async def test_close_releases_provider(self, fake_executor):
        """Closing a session closes its HTTP provider."""
        session = create_session(fake_executor, Config(api_key="sk"))
        await session.close()
