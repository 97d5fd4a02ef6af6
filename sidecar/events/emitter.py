"""Line protocol emitter for pipeline events.

This module provides a ProtocolEmitter that serializes ProtocolEvents to the
host-facing output stream (stdout by default), one line per event, flushing
after every write so the host sees progress immediately.

The emitter enforces the ordering invariant of the protocol: either the full
success sequence is written, or exactly one ERROR line. Any attempt to write
after a terminal event, or to mix the two shapes, raises ProtocolStateError.

Usage:
    >>> emitter = ProtocolEmitter()
    >>> emitter.progress("Initializing AI agent...")
    >>> emitter.document("<!DOCTYPE html><html>...</html>")
    >>> emitter.done()
    >>> emitter.exit_code
    0
"""

import sys
from enum import StrEnum
from typing import TextIO

import structlog

from events.types import (
    PROGRESS_DONE,
    EventType,
    ProtocolEvent,
    error,
    html_body,
    html_end,
    html_start,
    progress,
)

logger = structlog.get_logger(__name__)

ERROR_PREFIX = f"{EventType.ERROR.value}:"


class ProtocolStateError(RuntimeError):
    """Raised when an event would violate the protocol ordering."""


class EmitterPhase(StrEnum):
    """Position of the emitter within the protocol grammar."""

    OPEN = "open"
    FRAMED = "framed"
    BODY_WRITTEN = "body_written"
    CLOSED = "closed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BROKEN = "broken"


# phase -> {event type -> next phase}
_TRANSITIONS: dict[EmitterPhase, dict[EventType, EmitterPhase]] = {
    EmitterPhase.OPEN: {
        EventType.PROGRESS: EmitterPhase.OPEN,
        EventType.HTML_START: EmitterPhase.FRAMED,
        EventType.ERROR: EmitterPhase.FAILED,
    },
    EmitterPhase.FRAMED: {EventType.HTML_BODY: EmitterPhase.BODY_WRITTEN},
    EmitterPhase.BODY_WRITTEN: {EventType.HTML_END: EmitterPhase.CLOSED},
    EmitterPhase.CLOSED: {EventType.PROGRESS: EmitterPhase.SUCCEEDED},
}


class ProtocolEmitter:
    """Serializes pipeline events to the line protocol.

    Attributes:
        history: Every event written so far, in order.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize the emitter.

        Args:
            stream: Output stream. Defaults to sys.stdout at write time.
        """
        self._stream = stream
        self._phase = EmitterPhase.OPEN
        self.history: list[ProtocolEvent] = []

    @property
    def phase(self) -> EmitterPhase:
        return self._phase

    @property
    def finished(self) -> bool:
        """True once a terminal event (Done! or ERROR) has been written."""
        return self._phase in (EmitterPhase.SUCCEEDED, EmitterPhase.FAILED)

    @property
    def exit_code(self) -> int:
        """Process exit status: 0 only after the full success sequence."""
        return 0 if self._phase == EmitterPhase.SUCCEEDED else 1

    def emit(self, event: ProtocolEvent) -> None:
        """Write one event, enforcing the protocol ordering.

        Raises:
            ProtocolStateError: The event is not allowed in the current phase.
        """
        next_phase = _TRANSITIONS.get(self._phase, {}).get(event.type)
        if next_phase is None:
            raise ProtocolStateError(
                f"Cannot emit {event.type.value} in phase {self._phase.value}"
            )
        if (
            self._phase == EmitterPhase.CLOSED
            and event.text != PROGRESS_DONE
        ):
            raise ProtocolStateError("Only the Done! progress may follow HTML_END")

        self._write(event.to_line())
        self.history.append(event)
        self._phase = next_phase

    def progress(self, text: str) -> None:
        self.emit(progress(text))

    def document(self, document: str) -> None:
        """Write the framed document payload."""
        self.emit(html_start())
        self.emit(html_body(document))
        self.emit(html_end())

    def done(self) -> None:
        self.emit(progress(PROGRESS_DONE))

    def error(self, message: str) -> None:
        """Write the terminal ERROR line.

        A leading ``ERROR:`` in the message is dropped so the prefix never
        appears twice.
        """
        if message.startswith(ERROR_PREFIX):
            message = message[len(ERROR_PREFIX):]
        self.emit(error(message))

    def _write(self, line: str) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        try:
            stream.write(line + "\n")
            stream.flush()
        except (BrokenPipeError, ValueError) as e:
            # Host went away; nothing left to report to.
            self._phase = EmitterPhase.BROKEN
            logger.warning("protocol_write_failed", error=str(e))
            raise
