"""
Reference model client: the iterate / tool-call loop.

Sends the conversation to a completion provider, runs requested tools
through an executor one call at a time, and reports everything to the
controller through ``ToolCallbacks``. Approval and iteration-limit
decisions are delegated to the controller's gates via the async callbacks.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Protocol, TypeVar

import httpx

from config.defaults import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_SECONDS,
)
from core.client import ToolCallbacks
from core.exceptions import ProviderAPIError, RequestAbortedError
from core.models import ToolResult
from core.permissions import (
    DEFAULT_TOOL_CLASSIFICATION,
    ApprovalDecision,
    IterationBudget,
    ToolClassification,
)

from .providers import Completion, CompletionProvider, ToolCall
from .tools.read_tracker import ReadBeforeEditValidator, ReadTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Some models namespace tool names, e.g. "repo_browser.read_file"
TOOL_NAME_PREFIX = "repo_browser."

# Successful calls to these make their file_path count as read
READ_MARKING_TOOLS = frozenset({"read_file", "create_file"})

UNAUTHORIZED_STATUS = 401

INTERRUPTED_TOOL_CONTENT = "Error: Request interrupted by user"
NO_APPROVAL_HANDLER_ERROR = "Approval required but no approval handler is registered"


class ToolExecutor(Protocol):
    """Protocol for tool runners invoked by the agent loop."""

    async def execute(self, name: str, args: dict[str, Any]) -> ToolResult | dict[str, Any]:
        ...


class Agent:
    """
    Model client driving one conversation.

    Implements the ``core.client.ModelClient`` protocol.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        executor: ToolExecutor,
        *,
        system_message: str | None = None,
        tool_schemas: list[dict[str, Any]] | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        classification: ToolClassification = DEFAULT_TOOL_CLASSIFICATION,
        read_tracker: ReadTracker | None = None,
        validator: ReadBeforeEditValidator | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    ):
        """
        Initialize the agent.

        Args:
            provider: Completion backend
            executor: Runs tool calls
            system_message: Prepended to every provider request
            tool_schemas: Function tool schemas offered to the model
            max_iterations: Turns per user message before asking to continue
            classification: Tool gating table
            read_tracker: Files read this session; created when omitted
            validator: Read-before-edit check; bound to ``read_tracker`` when omitted
            max_retries: Provider retries per turn
            retry_delay: Seconds between retries
        """
        self.provider = provider
        self.executor = executor
        self.system_message = system_message
        self.tool_schemas = tool_schemas or []
        self.max_iterations = max_iterations
        self.classification = classification
        self.read_tracker = read_tracker if read_tracker is not None else ReadTracker()
        self.validator = validator or ReadBeforeEditValidator(self.read_tracker)
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self._history: list[dict[str, Any]] = []
        self._callbacks = ToolCallbacks()
        self._session_auto_approve = False
        self._run_state: _Run | None = None

    # --- ModelClient surface ---

    def set_tool_callbacks(self, callbacks: ToolCallbacks) -> None:
        self._callbacks = callbacks

    def set_session_auto_approve(self, enabled: bool) -> None:
        self._session_auto_approve = enabled

    def set_api_key(self, api_key: str) -> None:
        self.provider.set_api_key(api_key)

    def clear_history(self) -> None:
        self._history.clear()

    def interrupt(self) -> None:
        """Stop the running ``chat``; it raises RequestAbortedError."""
        if self._run_state is not None:
            self._run_state.cancel()
        self._close_unanswered_tool_calls()

    @property
    def history(self) -> list[dict[str, Any]]:
        """Provider-format conversation, without the system message."""
        return list(self._history)

    @property
    def session_auto_approve(self) -> bool:
        return self._session_auto_approve

    async def chat(self, user_text: str) -> None:
        """
        Run one user message to completion.

        Raises:
            RequestAbortedError: When interrupted
            ProviderAPIError: When the provider keeps failing (401 at once)
        """
        run = _Run(self._callbacks)
        self._run_state = run
        self._history.append({"role": "user", "content": user_text})
        try:
            await self._run(run)
        except RequestAbortedError:
            # A newer chat may own the history by now
            if self._run_state is run:
                self._close_unanswered_tool_calls()
            raise
        finally:
            if self._run_state is run:
                self._run_state = None

    # --- Loop ---

    async def _run(self, run: "_Run") -> None:
        budget = IterationBudget(self.max_iterations)
        callbacks = run.callbacks

        while True:
            run.check()
            if budget.exhausted:
                if not await self._ask_to_continue(run, budget.max_iterations):
                    logger.info("Stopping after %d iterations", budget.used)
                    return
                budget.reset()
            budget.consume()

            completion = await self._complete(run)
            if completion.usage is not None and callbacks.on_api_usage:
                callbacks.on_api_usage(completion.usage)
            self._history.append(completion.to_message())

            if not completion.tool_calls:
                if callbacks.on_final_message:
                    callbacks.on_final_message(completion.content or "", completion.reasoning)
                return

            if (completion.content or completion.reasoning) and callbacks.on_thinking_text:
                callbacks.on_thinking_text(completion.content or "", completion.reasoning)

            for call in completion.tool_calls:
                run.check()
                content = await self._run_tool_call(run, call)
                self._history.append({"role": "tool", "tool_call_id": call.id, "content": content})

    async def _ask_to_continue(self, run: "_Run", max_iterations: int) -> bool:
        if run.callbacks.on_max_iterations is None:
            return False
        should_continue = await run.callbacks.on_max_iterations(max_iterations)
        run.check()
        return should_continue

    async def _complete(self, run: "_Run") -> Completion:
        messages = list(self._history)
        if self.system_message:
            messages.insert(0, {"role": "system", "content": self.system_message})

        attempt = 0
        while True:
            try:
                return await run.guard(self.provider.complete(messages, self.tool_schemas))
            except ProviderAPIError as e:
                if e.status == UNAUTHORIZED_STATUS or attempt >= self.max_retries:
                    raise
                error: Exception = e
            except httpx.HTTPError as e:
                if attempt >= self.max_retries:
                    raise
                error = e
            attempt += 1
            logger.warning(
                "Provider call failed (attempt %d of %d): %s", attempt, self.max_retries + 1, error
            )
            await run.guard(asyncio.sleep(self.retry_delay))

    async def _run_tool_call(self, run: "_Run", call: ToolCall) -> str:
        """Run one tool call and return the content to send back to the model."""
        callbacks = run.callbacks
        name = call.name.removeprefix(TOOL_NAME_PREFIX)

        try:
            args = json.loads(call.arguments or "{}")
            if not isinstance(args, dict):
                raise ValueError("arguments must be a JSON object")
        except ValueError as e:
            logger.warning("Skipping %s call with unparseable arguments: %s", name, e)
            return f"Error: Invalid JSON arguments for {name}: {e}"

        if callbacks.on_tool_start:
            callbacks.on_tool_start(name, args)

        file_path = args.get("file_path")
        if name == "edit_file" and isinstance(file_path, str) and not self.validator.validate(file_path):
            error = self.validator.describe_violation(file_path)
            return self._finish(run, name, ToolResult(success=False, error=error))

        if self.classification.needs_approval(name, self._session_auto_approve):
            decision = await self._request_approval(run, name, args)
            if decision is None:
                return self._finish(run, name, ToolResult(success=False, error=NO_APPROVAL_HANDLER_ERROR))
            if not decision.approved:
                logger.info("Tool %s rejected by user", name)
                return self._finish(run, name, ToolResult(success=False, user_rejected=True))
            if decision.auto_approve_session:
                self._session_auto_approve = True

        result = await self._execute(run, name, args)
        if result.success and isinstance(file_path, str):
            if name in READ_MARKING_TOOLS:
                self.read_tracker.mark_read(file_path)
            elif name == "delete_file":
                self.read_tracker.forget(file_path)
        return self._finish(run, name, result)

    async def _request_approval(
        self, run: "_Run", name: str, args: dict[str, Any]
    ) -> ApprovalDecision | None:
        if run.callbacks.on_tool_approval is None:
            logger.warning("No approval handler registered, refusing %s", name)
            return None
        decision = await run.callbacks.on_tool_approval(name, args)
        # An interrupt force-rejects the pending approval; do not report it as a rejection
        run.check()
        return decision

    async def _execute(self, run: "_Run", name: str, args: dict[str, Any]) -> ToolResult:
        try:
            raw = await run.guard(self.executor.execute(name, args))
        except RequestAbortedError:
            raise
        except Exception as e:
            logger.warning("Tool %s raised: %s", name, e)
            return ToolResult(success=False, error=str(e))
        return raw if isinstance(raw, ToolResult) else ToolResult.model_validate(raw)

    def _finish(self, run: "_Run", name: str, result: ToolResult) -> str:
        if run.callbacks.on_tool_end:
            run.callbacks.on_tool_end(name, result)
        return result.to_model_content()

    def _close_unanswered_tool_calls(self) -> None:
        """Answer tool calls left open by an interrupt so the history stays valid."""
        for index in range(len(self._history) - 1, -1, -1):
            message = self._history[index]
            if message.get("role") == "assistant" and message.get("tool_calls"):
                answered = {
                    m.get("tool_call_id") for m in self._history[index + 1 :] if m.get("role") == "tool"
                }
                for call in message["tool_calls"]:
                    if call["id"] not in answered:
                        self._history.append(
                            {"role": "tool", "tool_call_id": call["id"], "content": INTERRUPTED_TOOL_CONTENT}
                        )
                return
            if message.get("role") == "user":
                return


class _Run:
    """
    Cancellation state of one ``chat`` call.

    Each call gets its own instance, so starting a new chat never revives
    one that was interrupted.
    """

    def __init__(self, callbacks: ToolCallbacks):
        self.callbacks = callbacks
        self.cancelled = False
        self._inflight: asyncio.Future[Any] | None = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    def check(self) -> None:
        if self.cancelled:
            raise RequestAbortedError()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` so that ``cancel()`` can abort it."""
        self.check()
        task = asyncio.ensure_future(awaitable)
        self._inflight = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self.cancelled:
                raise RequestAbortedError() from None
            raise
        finally:
            self._inflight = None
        # Finished just as the interrupt arrived
        self.check()
        return result
