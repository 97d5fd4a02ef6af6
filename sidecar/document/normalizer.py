"""Extraction and structural validation of generated HTML.

The agent is told to answer with a bare HTML document, but it sometimes
wraps it in commentary. ``normalize_document`` cuts the document out of the
accumulated text and runs a short list of ordered, case-insensitive
structural checks. This is a heuristic, not an HTML parser: tag-like text
inside comments or scripts can fool it.
"""

import re

from errors import MalformedOutputError
from events.types import FRAME_MARKERS, LINE_PREFIXES

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024

DOCTYPE_MARKER = "<!doctype"
HTML_CLOSE = "</html>"
HEAD_CLOSE = "</head>"
BODY_CLOSE = "</body>"

# Open tags must end at a tag boundary so "<header" is not read as "<head".
HTML_OPEN_RE = re.compile(r"<html(?=[\s>/])", re.IGNORECASE)
HEAD_OPEN_RE = re.compile(r"<head(?=[\s>/])", re.IGNORECASE)
BODY_OPEN_RE = re.compile(r"<body(?=[\s>/])", re.IGNORECASE)
DOCUMENT_START_RE = re.compile(r"<!doctype|<html(?=[\s>/])", re.IGNORECASE)

NOT_HTML = "Generated content is not valid HTML"
BAD_HTML_STRUCTURE = "Generated content is missing a valid <html> structure"
DOCTYPE_AFTER_HTML = "DOCTYPE must appear before <html>"
BAD_HEAD = "Generated content is missing a valid <head> section"
BAD_BODY = "Generated content is missing a valid <body> section"
BODY_AFTER_HTML = "HTML body must close before </html>"
TOO_LARGE = "Generated HTML exceeded size limit"
RESERVED_MARKER = "Generated content contains a reserved protocol marker line"


def _find(pattern: re.Pattern[str], text: str) -> int:
    match = pattern.search(text)
    return match.start() if match else -1


def extract_document(raw: str) -> str:
    """Cut the HTML document out of surrounding agent commentary.

    Leading text before the first ``<!DOCTYPE`` or ``<html`` and trailing
    text after the last ``</html>`` are discarded. Text that contains
    neither marker is returned trimmed but otherwise unchanged.
    """
    text = raw.strip()

    start = _find(DOCUMENT_START_RE, text)
    if start > 0:
        text = text[start:]

    end = text.lower().rfind(HTML_CLOSE)
    if end != -1:
        text = text[: end + len(HTML_CLOSE)]

    return text


def validate_structure(document: str) -> str | None:
    """Run the ordered structural checks.

    Returns:
        None when the document passes, otherwise the message of the first
        rule it violates.
    """
    lower = document.lower()
    doctype_index = lower.find(DOCTYPE_MARKER)
    html_open = _find(HTML_OPEN_RE, document)
    html_close = lower.rfind(HTML_CLOSE)
    head_open = _find(HEAD_OPEN_RE, document)
    head_close = lower.find(HEAD_CLOSE)
    body_open = _find(BODY_OPEN_RE, document)
    body_close = lower.rfind(BODY_CLOSE)

    if html_open == -1 or html_close == -1 or html_close < html_open:
        return BAD_HTML_STRUCTURE
    if doctype_index != -1 and doctype_index > html_open:
        return DOCTYPE_AFTER_HTML
    if head_open == -1 or head_close == -1 or head_close < head_open:
        return BAD_HEAD
    if body_open == -1 or body_close == -1 or body_close < body_open:
        return BAD_BODY
    if body_close > html_close:
        return BODY_AFTER_HTML
    return None


def is_reserved_line(line: str) -> bool:
    """True if a trimmed line would be read as a protocol line, not payload."""
    marker = line.strip()
    return marker in FRAME_MARKERS or marker.startswith(LINE_PREFIXES)


def has_reserved_marker_line(document: str) -> bool:
    """True if any line of the document would be read as a protocol line."""
    return any(is_reserved_line(line) for line in document.splitlines())


def normalize_document(raw: str) -> str:
    """Extract and validate the generated document.

    Re-normalizing a document this function returned yields the same text.

    Args:
        raw: Everything the agent produced for this run.

    Returns:
        The trimmed document, starting at the doctype or ``<html`` and
        ending with ``</html>``.

    Raises:
        MalformedOutputError: The text has no usable document or fails a
            structural rule.
    """
    document = extract_document(raw)

    if _find(HTML_OPEN_RE, document) == -1 or HTML_CLOSE not in document.lower():
        raise MalformedOutputError(NOT_HTML)

    problem = validate_structure(document)
    if problem is not None:
        raise MalformedOutputError(problem)

    if len(document.encode("utf-8")) > MAX_DOCUMENT_BYTES:
        raise MalformedOutputError(TOO_LARGE)
    if has_reserved_marker_line(document):
        raise MalformedOutputError(RESERVED_MARKER)

    return document
