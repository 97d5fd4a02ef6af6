"""Command-line entry point for the Trove generation sidecar.

The host launches one process per generation and reads the line protocol
from stdout. Logs go to stderr.

Usage:
    trove-sidecar "Todo" "a simple todo list"
    trove-sidecar --apps-dir ~/Apps --edit ~/Apps/todo.html "Todo" "add dark mode"
"""

import asyncio
import signal
import sys
from collections.abc import Callable, Mapping, Sequence

import structlog
from pydantic import ValidationError

from config import Settings, configure_logging
from errors import (
    ExecutableNotFoundError,
    GenerationCancelledError,
    GenerationError,
    UpstreamRuntimeError,
)
from events.emitter import EmitterPhase, ProtocolEmitter
from request_resolver import resolve_invocation
from sandbox.locator import build_search_env, locate_agent_executable
from session_manager import (
    CANCELLED_MESSAGE,
    ActiveSessionSlot,
    GenerationSession,
    RunStarter,
)

logger = structlog.get_logger(__name__)

PROGRESS_INITIALIZING = "Initializing AI agent..."
PROGRESS_GENERATING = "AI is generating your app..."

EXECUTABLE_NOT_FOUND = (
    "Claude Code CLI not found. Install it or set CLAUDE_CODE_PATH to the "
    "executable path."
)

CANCEL_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_signal_handlers(slot: ActiveSessionSlot) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in CANCEL_SIGNALS:
        try:
            loop.add_signal_handler(sig, _on_signal, slot, sig)
        except (NotImplementedError, RuntimeError, ValueError):
            # Not supported on this platform or not on the main thread.
            continue
        installed.append(sig)
    return installed


def _remove_signal_handlers(installed: Sequence[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


def _on_signal(slot: ActiveSessionSlot, sig: signal.Signals) -> None:
    logger.info("signal_received", signal=sig.name)
    slot.cancel()


def _report_failure(
    emitter: ProtocolEmitter,
    slot: ActiveSessionSlot,
    error: GenerationError,
) -> int:
    """Abort any live session and write the single ERROR line."""
    if slot.session is not None:
        slot.cancel()
    logger.error(
        "generation_failed",
        error_type=type(error).__name__,
        error=error.message,
    )
    if emitter.phase != EmitterPhase.OPEN:
        # The frame or terminal line is already out; the host sees a
        # truncated stream and a non-zero exit.
        logger.error("error_not_reported", phase=emitter.phase.value)
        return 1
    emitter.error(error.message)
    return emitter.exit_code


async def run(
    argv: Sequence[str],
    *,
    emitter: ProtocolEmitter | None = None,
    runner: RunStarter | None = None,
    locator: Callable[[Mapping[str, str]], str | None] = locate_agent_executable,
    settings: Settings | None = None,
    slot: ActiveSessionSlot | None = None,
) -> int:
    """Run one generation and return the process exit status.

    Args:
        argv: Arguments after the program name.
        emitter: Protocol emitter; writes to stdout when omitted.
        runner: Starts the agent run; the Claude Agent SDK when omitted.
        locator: Finds the agent CLI given the environment to search, with
            any configured executable path applied. Called off the event loop.
        settings: Environment settings; loaded fresh when omitted.
        slot: Active session slot that signal handlers cancel through.

    Returns:
        0 after the full success sequence, 1 after an ERROR line.
    """
    emitter = emitter if emitter is not None else ProtocolEmitter()
    slot = slot if slot is not None else ActiveSessionSlot()
    installed = _install_signal_handlers(slot)

    try:
        request, config = resolve_invocation(argv, settings)

        emitter.progress(PROGRESS_INITIALIZING)
        search_env = build_search_env(config.claude_code_path)
        executable = await asyncio.to_thread(locator, search_env)
        if slot.cancel_requested:
            raise GenerationCancelledError(CANCELLED_MESSAGE)
        if executable is None:
            raise ExecutableNotFoundError(EXECUTABLE_NOT_FOUND)

        emitter.progress(f'Generating "{request.name}"...')
        emitter.progress(PROGRESS_GENERATING)

        session = GenerationSession(
            request,
            executable,
            emitter=emitter,
            runner=runner,
            slot=slot,
        )
        await session.run()
        return emitter.exit_code

    except GenerationError as e:
        return _report_failure(emitter, slot, e)

    except Exception as e:
        logger.exception("unexpected_error")
        return _report_failure(emitter, slot, UpstreamRuntimeError(str(e) or type(e).__name__))

    finally:
        _remove_signal_handlers(installed)


def _logging_settings() -> tuple[str, str]:
    try:
        settings = Settings()
    except ValidationError:
        # Reported through the protocol once run() loads settings again.
        return "INFO", "json"
    return settings.log_level, settings.log_format


def main() -> None:
    """Console script entry point."""
    configure_logging(*_logging_settings())
    sys.exit(asyncio.run(run(sys.argv[1:])))


if __name__ == "__main__":
    main()
