"""Event system for the sidecar line protocol.

This package provides the events the generation pipeline reports to its host
and the code that writes and reads them as stdout lines.

Key Components:
    - EventType: Enum of all event types in the protocol
    - ProtocolEvent: Pydantic model for one event
    - ProtocolEmitter: Ordered serializer with exit-status bookkeeping
    - read_protocol: Host-side parser for the emitted lines

Usage:
    >>> from events import ProtocolEmitter
    >>>
    >>> emitter = ProtocolEmitter()
    >>> emitter.progress("Initializing AI agent...")
    >>> emitter.error("Generation timed out after 180s")
    >>> emitter.exit_code
    1

Event Flow:
    1. The generation session reports progress while the agent streams
    2. The validated, injected document is written as a framed payload
    3. The host parses the lines and persists the document
"""

from events.emitter import ProtocolEmitter, ProtocolStateError
from events.reader import ProtocolError, ProtocolResult, read_protocol
from events.types import EventType, ProtocolEvent

__all__ = [
    # Event types
    "EventType",
    "ProtocolEvent",
    # Emitter
    "ProtocolEmitter",
    "ProtocolStateError",
    # Reader
    "ProtocolError",
    "ProtocolResult",
    "read_protocol",
]
