"""Event type definitions for the sidecar line protocol.

This module defines every event the pipeline reports to the host. Each
event serializes to one stdout line, except ``HTML_BODY`` whose payload is
the raw document and may span many lines.
"""

from enum import StrEnum

from pydantic import BaseModel

# Fixed progress texts.
PROGRESS_RECEIVING = "Receiving HTML content..."
PROGRESS_DONE = "Done!"


class EventType(StrEnum):
    """All event types in the sidecar protocol.

    A successful run is ``PROGRESS*, HTML_START, HTML_BODY, HTML_END,
    PROGRESS("Done!")``. A failed run is ``PROGRESS*, ERROR``.
    """

    PROGRESS = "PROGRESS"
    HTML_START = "HTML_START"
    HTML_BODY = "HTML_BODY"
    HTML_END = "HTML_END"
    ERROR = "ERROR"


# Markers that frame the document payload. A payload line equal to one of
# these would be read as framing by a line-oriented consumer.
FRAME_MARKERS = frozenset({EventType.HTML_START.value, EventType.HTML_END.value})

# Line prefixes a consumer interprets before it checks whether it is inside
# the frame, so a payload line starting with one never reaches the document.
LINE_PREFIXES = (f"{EventType.PROGRESS.value}:", f"{EventType.ERROR.value}:")


class ProtocolEvent(BaseModel):
    """An event emitted to the host.

    Attributes:
        type: The category of event.
        text: Progress or error text, or the document for HTML_BODY.
    """

    type: EventType
    text: str = ""

    model_config = {"frozen": True}

    def to_line(self) -> str:
        """Serialize the event without a trailing newline."""
        if self.type in (EventType.PROGRESS, EventType.ERROR):
            return f"{self.type.value}:{_single_line(self.text)}"
        if self.type == EventType.HTML_BODY:
            return self.text
        return self.type.value


def _single_line(text: str) -> str:
    return " ".join(text.splitlines()) if "\n" in text or "\r" in text else text


def progress(text: str) -> ProtocolEvent:
    return ProtocolEvent(type=EventType.PROGRESS, text=text)


def error(text: str) -> ProtocolEvent:
    return ProtocolEvent(type=EventType.ERROR, text=text)


def html_start() -> ProtocolEvent:
    return ProtocolEvent(type=EventType.HTML_START)


def html_body(document: str) -> ProtocolEvent:
    return ProtocolEvent(type=EventType.HTML_BODY, text=document)


def html_end() -> ProtocolEvent:
    return ProtocolEvent(type=EventType.HTML_END)
