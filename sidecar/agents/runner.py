"""Agent run lifecycle built on claude_agent_sdk.

This module provides:
- AgentRun: The run handle. A background task pumps the SDK's message
  stream into a bounded asyncio.Queue that a single consumer drains, so
  ordering and backpressure are preserved and the run can be closed from a
  timer or a signal handler without touching the generator directly.
- AgentRunner: Builds ClaudeAgentOptions for a GenerationRequest and starts
  the run against a located CLI executable.
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import structlog
from claude_agent_sdk import ClaudeAgentOptions, query

from agents.prompts import build_task_prompt, get_system_prompt
from agents.stream import AgentMessage, to_agent_message
from models.schemas import GenerationRequest

logger = structlog.get_logger(__name__)

# Messages buffered between the SDK stream and the consumer loop.
DEFAULT_BUFFER_SIZE = 16

# Tools available when editing; the agent may only inspect the old document.
EDIT_MODE_TOOLS: tuple[str, ...] = ("Read",)


@dataclass(frozen=True)
class _Failure:
    error: BaseException


_END = object()


class AgentRun:
    """Handle for one running agent stream.

    Usage:
        >>> run = AgentRun(stream)
        >>> run.start()
        >>> while (message := await run.receive()) is not None:
        ...     handle(message)
        >>> run.close()
        >>> await run.wait_closed()
    """

    def __init__(
        self,
        messages: AsyncIterator[Any],
        max_buffered: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self._messages = messages
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_buffered)
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start pumping messages. Must be called from a running loop."""
        if self._task is not None:
            raise RuntimeError("AgentRun already started")
        self._task = asyncio.create_task(self._pump(), name="agent-run-pump")

    async def _pump(self) -> None:
        try:
            async for raw in self._messages:
                await self._queue.put(to_agent_message(raw))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._queue.put(_Failure(e))
        else:
            await self._queue.put(_END)
        finally:
            await self._close_stream()

    async def _close_stream(self) -> None:
        aclose = getattr(self._messages, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.warning("agent_stream_close_failed", error=str(e))

    async def receive(self) -> AgentMessage | None:
        """Wait for the next message.

        Returns:
            The next message, or None once the stream ended naturally.

        Raises:
            Exception: Whatever the underlying stream raised.
        """
        item = await self._queue.get()
        if item is _END:
            return None
        if isinstance(item, _Failure):
            raise item.error
        return item

    def close(self) -> None:
        """Stop the run. Safe to call repeatedly and from sync callbacks."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the pump task has fully unwound."""
        if self._task is None:
            return
        # asyncio.wait never re-raises the pump's own cancellation.
        await asyncio.wait({self._task})


class AgentRunner:
    """Starts agent runs through the Claude Agent SDK."""

    def __init__(self, max_buffered: int = DEFAULT_BUFFER_SIZE) -> None:
        self.max_buffered = max_buffered

    def build_options(
        self,
        request: GenerationRequest,
        executable: str,
    ) -> ClaudeAgentOptions:
        """Build SDK options for a request.

        Edit runs are scoped to the apps directory and may only read.
        """
        options_kwargs: dict[str, Any] = dict(
            system_prompt=get_system_prompt(),
            model=request.model,
            max_turns=request.max_turns,
            cli_path=executable,
            allowed_tools=[],
            stderr=_log_cli_stderr,
        )
        if request.is_edit and request.apps_dir is not None:
            options_kwargs["allowed_tools"] = list(EDIT_MODE_TOOLS)
            options_kwargs["cwd"] = str(request.apps_dir)
            options_kwargs["add_dirs"] = [str(request.apps_dir)]
        return ClaudeAgentOptions(**options_kwargs)

    def start(self, request: GenerationRequest, executable: str) -> AgentRun:
        """Launch the agent and return its running handle."""
        options = self.build_options(request, executable)
        logger.info(
            "agent_run_starting",
            model=request.model,
            max_turns=request.max_turns,
            mode=request.mode.value,
            cli=executable,
        )
        stream = query(prompt=build_task_prompt(request), options=options)
        run = AgentRun(stream, max_buffered=self.max_buffered)
        run.start()
        return run


def _log_cli_stderr(line: str) -> None:
    logger.debug("agent_cli_stderr", line=line.rstrip())
