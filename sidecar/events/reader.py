"""Consumer side of the sidecar line protocol.

The host reads the sidecar's stdout line by line. This module implements that
reading for Python hosts and for end-to-end tests. Each line is trimmed and
checked for the ``PROGRESS:`` prefix, the frame markers and the ``ERROR:``
prefix, in that order, whether or not a frame is open. Only lines that match
none of them and arrive inside an ``HTML_START``/``HTML_END`` frame are
payload, so payload indentation is not preserved.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from events.types import EventType

MAX_HTML_BYTES = 10 * 1024 * 1024

_PROGRESS_PREFIX = f"{EventType.PROGRESS.value}:"
_ERROR_PREFIX = f"{EventType.ERROR.value}:"


class ProtocolError(Exception):
    """Raised when the stream cannot yield a usable document."""


@dataclass
class ProtocolResult:
    """Everything a host learns from one sidecar run.

    Attributes:
        progress: Progress texts in arrival order.
        html: The document payload, or None if no frame was seen.
        error: Text of the first ERROR line, if any.
    """

    progress: list[str] = field(default_factory=list)
    html: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.html is not None


def read_protocol(
    lines: Iterable[str],
    max_html_bytes: int = MAX_HTML_BYTES,
) -> ProtocolResult:
    """Parse sidecar output lines into a ProtocolResult.

    Args:
        lines: Output lines, with or without trailing newlines.
        max_html_bytes: Upper bound on the UTF-8 size of the payload.

    Returns:
        The parsed result. ``error`` is set when the sidecar reported one.

    Raises:
        ProtocolError: The payload exceeded the size limit, or the run ended
            without an error and without any document content.
    """
    result = ProtocolResult()
    payload: list[str] = []
    payload_bytes = 0
    collecting = False
    saw_frame = False

    for raw in lines:
        line = raw.strip()

        if line.startswith(_PROGRESS_PREFIX):
            result.progress.append(line[len(_PROGRESS_PREFIX):])
        elif line == EventType.HTML_START.value:
            collecting = True
            saw_frame = True
        elif line == EventType.HTML_END.value:
            collecting = False
        elif line.startswith(_ERROR_PREFIX):
            if result.error is None:
                result.error = line[len(_ERROR_PREFIX):]
        elif collecting:
            extra = 1 if payload else 0
            payload_bytes += len(line.encode("utf-8")) + extra
            if payload_bytes > max_html_bytes:
                raise ProtocolError("Generated HTML exceeded size limit")
            payload.append(line)

    if result.error is not None:
        return result

    html = "\n".join(payload).strip()
    if not saw_frame or not html:
        raise ProtocolError("No HTML content generated")
    result.html = html
    return result
