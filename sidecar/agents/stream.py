"""Classification of the agent's streamed messages.

The agent run yields a heterogeneous sequence: assistant turns made of
content blocks, tool traffic, system notices and one terminal result. This
module converts those messages (either ``claude_agent_sdk`` objects or raw
stream-json dicts) into a small tagged union and folds them into the text
buffer the normalizer later works on.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog
from claude_agent_sdk import AssistantMessage, ResultMessage
from claude_agent_sdk import TextBlock as SDKTextBlock

from events.types import PROGRESS_RECEIVING

logger = structlog.get_logger(__name__)

# Opening marker whose first appearance means the payload has started.
PAYLOAD_MARKER = "<!DOCTYPE"

ASSISTANT = "assistant"
RESULT = "result"


@dataclass(frozen=True)
class TextBlock:
    """A text-bearing content block."""

    text: str


@dataclass(frozen=True)
class AgentMessage:
    """One message from the agent run.

    Attributes:
        kind: ``assistant``, ``result`` or the tag of an ignored message.
        blocks: Text blocks of an assistant message, in order.
        result: Final text of a result message, if it carried one.
    """

    kind: str
    blocks: tuple[TextBlock, ...] = ()
    result: str | None = None


@dataclass
class StreamState:
    """Text accumulated so far and whether the payload has started."""

    html_buffer: str = ""
    payload_started: bool = False


def _text_blocks(content: Any) -> tuple[TextBlock, ...]:
    if not isinstance(content, (list, tuple)):
        return ()
    blocks: list[TextBlock] = []
    for block in content:
        if isinstance(block, SDKTextBlock):
            blocks.append(TextBlock(block.text))
        elif (
            isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        ):
            blocks.append(TextBlock(block["text"]))
    return tuple(blocks)


def to_agent_message(raw: Any) -> AgentMessage:
    """Convert an SDK message object or a stream-json dict.

    Unknown shapes become an AgentMessage whose kind names what was seen,
    which the classifier ignores.
    """
    if isinstance(raw, AgentMessage):
        return raw
    if isinstance(raw, AssistantMessage):
        return AgentMessage(kind=ASSISTANT, blocks=_text_blocks(raw.content))
    if isinstance(raw, ResultMessage):
        result = raw.result if isinstance(raw.result, str) else None
        return AgentMessage(kind=RESULT, result=result)

    if isinstance(raw, dict):
        kind = raw.get("type")
        if kind == ASSISTANT:
            message = raw.get("message")
            content = message.get("content") if isinstance(message, dict) else None
            return AgentMessage(kind=ASSISTANT, blocks=_text_blocks(content))
        if kind == RESULT:
            result = raw.get("result")
            return AgentMessage(
                kind=RESULT,
                result=result if isinstance(result, str) else None,
            )
        return AgentMessage(kind=str(kind) if kind is not None else "unknown")

    return AgentMessage(kind=type(raw).__name__)


class StreamClassifier:
    """Folds agent messages into a StreamState.

    ``on_progress`` is called once, with "Receiving HTML content...", the
    first time the buffer contains the opening marker after an append.
    """

    def __init__(
        self,
        state: StreamState | None = None,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.state = state if state is not None else StreamState()
        self._on_progress = on_progress

    def classify(self, message: AgentMessage) -> None:
        """Apply one message to the state. Never ends the stream."""
        if message.kind == ASSISTANT:
            for block in message.blocks:
                self.state.html_buffer += block.text
                if not self.state.payload_started and PAYLOAD_MARKER in self.state.html_buffer:
                    self.state.payload_started = True
                    logger.debug(
                        "payload_started",
                        buffered_chars=len(self.state.html_buffer),
                    )
                    if self._on_progress is not None:
                        self._on_progress(PROGRESS_RECEIVING)
        elif message.kind == RESULT:
            if message.result and not self.state.html_buffer:
                self.state.html_buffer = message.result
