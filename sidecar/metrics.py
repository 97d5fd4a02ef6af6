"""Per-run metrics for a generation session.

The session records what the agent stream delivered and how long the run
took; the totals are logged when streaming ends, whatever the outcome.

Usage:
    >>> from metrics import GenerationMetrics
    >>> metrics = GenerationMetrics()
    >>> metrics.record_message("assistant", text_chars=120)
    >>> metrics.finish()
    >>> metrics.to_dict()["messages"]
    1
"""

import time
from dataclasses import dataclass, field


@dataclass
class GenerationMetrics:
    """Accumulated metrics for a single agent run.

    Attributes:
        messages: Total messages received from the agent.
        assistant_messages: Messages tagged ``assistant``.
        result_messages: Messages tagged ``result``.
        ignored_messages: Messages of any other kind.
        text_chars: Characters of text appended to the buffer.
        duration_ms: Streaming time in milliseconds (set by finish()).
        started_at: Monotonic timestamp when tracking began.
    """

    messages: int = 0
    assistant_messages: int = 0
    result_messages: int = 0
    ignored_messages: int = 0
    text_chars: int = 0
    duration_ms: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def record_message(self, kind: str, text_chars: int = 0) -> None:
        """Count one message and the text it added."""
        self.messages += 1
        if kind == "assistant":
            self.assistant_messages += 1
        elif kind == "result":
            self.result_messages += 1
        else:
            self.ignored_messages += 1
        self.text_chars += text_chars

    def finish(self) -> None:
        """Freeze the duration."""
        self.duration_ms = int((time.monotonic() - self.started_at) * 1000)

    def to_dict(self) -> dict[str, int]:
        """Convert to a plain dict suitable for structured logging."""
        return {
            "messages": self.messages,
            "assistant_messages": self.assistant_messages,
            "result_messages": self.result_messages,
            "ignored_messages": self.ignored_messages,
            "text_chars": self.text_chars,
            "duration_ms": self.duration_ms,
        }
