"""Shared test fixtures for sidecar tests.

Provides a fake agent runner, an in-memory protocol emitter and environment
isolation so that tests never launch the real Claude Code CLI or read the
developer's TROVE_* configuration.
"""

import asyncio
import io
import sys
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from typing import Any

import pytest

# Ensure the sidecar root is on sys.path so that absolute imports
# like ``from sandbox.security import ...`` resolve correctly when running
# pytest from the repository root.
_sidecar_root = str(Path(__file__).resolve().parent.parent)
if _sidecar_root not in sys.path:
    sys.path.insert(0, _sidecar_root)

from agents.runner import AgentRun  # noqa: E402
from agents.stream import AgentMessage, TextBlock  # noqa: E402
from config import Settings  # noqa: E402
from events.emitter import ProtocolEmitter  # noqa: E402
from models.schemas import GenerationRequest  # noqa: E402

MINIMAL_DOCUMENT = (
    "<!DOCTYPE html>\n"
    "<html lang=\"en\">\n"
    "<head>\n"
    "  <title>Todo</title>\n"
    "</head>\n"
    "<body>\n"
    "  <h1>Todo</h1>\n"
    "</body>\n"
    "</html>"
)

FAKE_EXECUTABLE = "/usr/local/bin/claude"


def assistant(*texts: str) -> AgentMessage:
    """Build an assistant message with one text block per argument."""
    return AgentMessage(kind="assistant", blocks=tuple(TextBlock(t) for t in texts))


def result(text: str | None = None) -> AgentMessage:
    return AgentMessage(kind="result", result=text)


# ---------------------------------------------------------------------------
# Fake Agent Runner
# ---------------------------------------------------------------------------


class FakeAgentRunner:
    """Stands in for AgentRunner.

    Streams the configured messages through a real AgentRun, then either
    ends, raises ``error`` or hangs until the run is closed.
    """

    def __init__(
        self,
        messages: Sequence[Any] = (),
        *,
        hang: bool = False,
        error: Exception | None = None,
    ) -> None:
        self.messages = list(messages)
        self.hang = hang
        self.error = error
        self.calls: list[tuple[GenerationRequest, str]] = []
        self.runs: list[AgentRun] = []
        self.stream_closed = False

    async def _stream(self) -> AsyncIterator[Any]:
        try:
            for message in self.messages:
                await asyncio.sleep(0)
                yield message
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.stream_closed = True

    def start(self, request: GenerationRequest, executable: str) -> AgentRun:
        self.calls.append((request, executable))
        run = AgentRun(self._stream())
        run.start()
        self.runs.append(run)
        return run


@pytest.fixture()
def fake_runner() -> FakeAgentRunner:
    """A runner that answers with one valid document."""
    return FakeAgentRunner([assistant(MINIMAL_DOCUMENT), result("ok")])


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------


@pytest.fixture()
def output() -> io.StringIO:
    """Captured protocol output."""
    return io.StringIO()


@pytest.fixture()
def emitter(output: io.StringIO) -> ProtocolEmitter:
    """Return an emitter writing to the captured output."""
    return ProtocolEmitter(stream=output)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove sidecar configuration from the environment for every test."""
    for key in (
        "TROVE_CLAUDE_MODEL",
        "TROVE_CLAUDE_MAX_TURNS",
        "TROVE_CLAUDE_TIMEOUT_MS",
        "TROVE_LOG_LEVEL",
        "TROVE_LOG_FORMAT",
        "CLAUDE_CODE_PATH",
        "CLAUDE_PATH",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def settings() -> Settings:
    """Default settings that ignore any .env file."""
    return Settings(_env_file=None)


def make_request(**overrides: Any) -> GenerationRequest:
    """Build a create-mode request with test defaults."""
    fields: dict[str, Any] = {
        "name": "Todo",
        "prompt": "simple list",
        "model": "sonnet",
        "max_turns": 3,
        "timeout_ms": 5_000,
    }
    fields.update(overrides)
    return GenerationRequest(**fields)
