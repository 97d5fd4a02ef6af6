"""Generation session: one agent run from launch to emitted document.

This module provides the GenerationSession class that owns a single agent
run, its abort signal and its timeout timer, and drives the run through

    init -> streaming -> extracting -> validating -> injecting -> emitting -> done

with ``failed`` and ``cancelled`` reachable from any state.

It also provides ActiveSessionSlot, the handle through which code outside the
pipeline (signal handlers) cancels whatever session is currently streaming.
The slot is set when streaming starts and cleared by the session's finalizer.
A cancel that arrives while no session is attached is remembered, and a
session that attaches afterwards stops before launching the agent.

Usage:
    >>> slot = ActiveSessionSlot()
    >>> session = GenerationSession(
    ...     request,
    ...     executable="/usr/local/bin/claude",
    ...     emitter=ProtocolEmitter(),
    ...     slot=slot,
    ... )
    >>> document = await session.run()
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

import structlog

from agents.runner import AgentRun, AgentRunner
from agents.stream import AgentMessage, StreamClassifier, StreamState
from document.normalizer import extract_document, normalize_document
from document.storage_bridge import inject_storage_bridge
from errors import (
    GenerationCancelledError,
    GenerationError,
    GenerationTimeoutError,
    UpstreamRuntimeError,
)
from events.emitter import ProtocolEmitter
from metrics import GenerationMetrics
from models.schemas import TERMINAL_STATUSES, GenerationRequest, SessionStatus

logger = structlog.get_logger(__name__)

PROGRESS_FINALIZING = "Finalizing..."
CANCELLED_MESSAGE = "Generation cancelled"


class RunStarter(Protocol):
    """Anything that can launch an agent run for a request."""

    def start(self, request: GenerationRequest, executable: str) -> AgentRun: ...


class AbortReason(StrEnum):
    """Why the streaming loop was aborted."""

    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class SessionState:
    """Mutable state owned by one GenerationSession.

    Attributes:
        stream: Accumulated text and the payload-started flag.
        abort_signal: Set to stop the streaming loop; None once finalized.
        run_handle: The live agent run; None once finalized.
        timer_handle: The armed timeout; None once finalized.
        abort_reason: What set the abort signal, if anything did.
    """

    stream: StreamState = field(default_factory=StreamState)
    abort_signal: asyncio.Event | None = None
    run_handle: AgentRun | None = None
    timer_handle: asyncio.TimerHandle | None = None
    abort_reason: AbortReason | None = None

    @property
    def html_buffer(self) -> str:
        return self.stream.html_buffer

    @property
    def payload_started(self) -> bool:
        return self.stream.payload_started


def rounded_seconds(milliseconds: int) -> int:
    """Round milliseconds to whole seconds, halves rounding up."""
    return (milliseconds + 500) // 1000


class ActiveSessionSlot:
    """Holds the session that is currently streaming, if any.

    At most one session may be attached at a time.
    """

    def __init__(self) -> None:
        self._session: GenerationSession | None = None
        self._cancel_requested = False

    @property
    def session(self) -> "GenerationSession | None":
        return self._session

    @property
    def cancel_requested(self) -> bool:
        """True once cancel was called while no session was attached."""
        return self._cancel_requested

    def attach(self, session: "GenerationSession") -> None:
        """Register the session that is about to stream.

        Raises:
            RuntimeError: Another session is already attached.
        """
        if self._session is not None and self._session is not session:
            raise RuntimeError("Another generation is already running")
        self._session = session

    def release(self, session: "GenerationSession") -> None:
        """Clear the slot if it still holds ``session``."""
        if self._session is session:
            self._session = None

    def cancel(self) -> bool:
        """Cancel the attached session.

        With no session attached the request is kept as pending.

        Returns:
            True if a live session received the cancellation.
        """
        session = self._session
        if session is None:
            self._cancel_requested = True
            logger.info("cancel_pending_no_active_session")
            return False
        return session.cancel()


class GenerationSession:
    """Drives one agent run through its lifecycle.

    The session is created only after the request passed validation and the
    agent executable was found. ``run`` may be called once.

    Attributes:
        session_id: Identifier used in log records.
        request: The immutable generation request.
        executable: Path of the agent CLI.
        status: Current lifecycle status.
        state: Buffers and handles owned by this session.
        metrics: Message counts and timing for the run.
    """

    def __init__(
        self,
        request: GenerationRequest,
        executable: str,
        *,
        emitter: ProtocolEmitter,
        runner: RunStarter | None = None,
        slot: ActiveSessionSlot | None = None,
    ) -> None:
        self.session_id = f"gen_{uuid.uuid4().hex[:12]}"
        self.request = request
        self.executable = executable
        self.status = SessionStatus.INIT
        self.state = SessionState()
        self.metrics = GenerationMetrics()
        self._emitter = emitter
        self._runner: RunStarter = runner if runner is not None else AgentRunner()
        self._slot = slot if slot is not None else ActiveSessionSlot()
        self._log = logger.bind(session_id=self.session_id)

    def _transition(self, status: SessionStatus) -> None:
        self._log.debug(
            "session_transition",
            from_status=self.status.value,
            to_status=status.value,
        )
        self.status = status

    async def run(self) -> str:
        """Run the session to completion and emit the success sequence.

        Returns:
            The validated document with the storage bridge injected.

        Raises:
            GenerationTimeoutError: The run exceeded ``timeout_ms``.
            GenerationCancelledError: ``cancel`` was called while streaming.
            MalformedOutputError: The output failed structural validation.
            UpstreamRuntimeError: Any other failure of the agent run.
        """
        if self.status != SessionStatus.INIT:
            raise RuntimeError(f"Session already {self.status.value}")

        self._log.info(
            "session_started",
            mode=self.request.mode.value,
            model=self.request.model,
            timeout_ms=self.request.timeout_ms,
        )

        try:
            raw = await self._stream()

            self._transition(SessionStatus.EXTRACTING)
            extracted = extract_document(raw)

            self._transition(SessionStatus.VALIDATING)
            document = normalize_document(extracted)

            self._transition(SessionStatus.INJECTING)
            document = inject_storage_bridge(document)

            self._transition(SessionStatus.EMITTING)
            self._emitter.progress(PROGRESS_FINALIZING)
            self._emitter.document(document)
            self._emitter.done()

            self._transition(SessionStatus.DONE)
            self._log.info("session_complete", document_chars=len(document))
            return document

        except GenerationCancelledError:
            self._transition(SessionStatus.CANCELLED)
            self._log.info("session_cancelled")
            raise

        except asyncio.CancelledError:
            self._transition(SessionStatus.CANCELLED)
            self._log.info("session_task_cancelled")
            raise

        except GenerationError as e:
            self._transition(SessionStatus.FAILED)
            self._log.error(
                "session_error",
                error_type=type(e).__name__,
                error=e.message,
            )
            raise

        except Exception as e:
            self._transition(SessionStatus.FAILED)
            self._log.error("session_upstream_error", error=str(e))
            raise UpstreamRuntimeError(str(e) or type(e).__name__) from e

    async def _stream(self) -> str:
        """Consume the agent run until it ends, times out or is cancelled."""
        loop = asyncio.get_running_loop()
        self.state.abort_signal = asyncio.Event()
        self._slot.attach(self)

        try:
            if self._slot.cancel_requested:
                self.state.abort_reason = AbortReason.CANCELLED
                self._raise_aborted()

            self.state.run_handle = self._runner.start(self.request, self.executable)
            self.state.timer_handle = loop.call_later(
                self.request.timeout_ms / 1000,
                self._on_timeout,
            )
            self._transition(SessionStatus.STREAMING)

            classifier = StreamClassifier(
                self.state.stream,
                on_progress=self._emitter.progress,
            )
            while True:
                message = await self._next_message()
                if message is None:
                    break
                classifier.classify(message)
                self.metrics.record_message(
                    message.kind,
                    text_chars=sum(len(block.text) for block in message.blocks),
                )
        finally:
            await self._finish_streaming()

        return self.state.html_buffer

    async def _next_message(self) -> AgentMessage | None:
        """Wait for the next message or the abort signal, whichever is first."""
        signal = self.state.abort_signal
        run = self.state.run_handle
        if signal is None or run is None:
            raise RuntimeError("Session is not streaming")
        if signal.is_set():
            self._raise_aborted()

        receive = asyncio.ensure_future(run.receive())
        aborted = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({receive, aborted}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for future in (receive, aborted):
                if not future.done():
                    future.cancel()

        if signal.is_set():
            if receive.done() and not receive.cancelled():
                # Mark any pending failure as retrieved; the abort wins.
                receive.exception()
            self._raise_aborted()
        return receive.result()

    def _raise_aborted(self) -> None:
        if self.state.abort_reason == AbortReason.TIMEOUT:
            seconds = rounded_seconds(self.request.timeout_ms)
            raise GenerationTimeoutError(f"Generation timed out after {seconds}s")
        raise GenerationCancelledError(CANCELLED_MESSAGE)

    def _on_timeout(self) -> None:
        self._log.warning(
            "agent_run_timeout",
            timeout_ms=self.request.timeout_ms,
            payload_started=self.state.payload_started,
        )
        self._abort(AbortReason.TIMEOUT)

    def _abort(self, reason: AbortReason) -> bool:
        """Set the abort signal and close the run handle."""
        signal = self.state.abort_signal
        if signal is None or signal.is_set():
            return False
        self.state.abort_reason = reason
        signal.set()
        if self.state.run_handle is not None:
            self.state.run_handle.close()
        return True

    def cancel(self) -> bool:
        """Request cooperative cancellation.

        Takes effect at the streaming loop's next suspension point. After the
        session has left streaming this is a no-op.

        Returns:
            True if the abort signal was set by this call.
        """
        if self.status in TERMINAL_STATUSES:
            return False
        cancelled = self._abort(AbortReason.CANCELLED)
        if cancelled:
            self._log.info("session_cancel_requested")
        return cancelled

    async def _finish_streaming(self) -> None:
        """Finalizer for every exit from streaming.

        Cancels the timer, drops the run handle and abort signal, releases the
        slot, then waits for the run to unwind.
        """
        timer = self.state.timer_handle
        run = self.state.run_handle
        self.state.timer_handle = None
        self.state.run_handle = None
        self.state.abort_signal = None
        self._slot.release(self)

        if timer is not None:
            timer.cancel()
        self.metrics.finish()

        try:
            if run is not None:
                run.close()
                await run.wait_closed()
        finally:
            self._log.info(
                "agent_run_finished",
                payload_started=self.state.payload_started,
                abort_reason=self.state.abort_reason.value if self.state.abort_reason else None,
                **self.metrics.to_dict(),
            )
