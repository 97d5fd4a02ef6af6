"""Models module for Pydantic schemas.

This module exposes the request and status models shared by the pipeline.
"""

from models.schemas import (
    TERMINAL_STATUSES,
    GenerationMode,
    GenerationRequest,
    SessionStatus,
)

__all__ = [
    "GenerationMode",
    "GenerationRequest",
    "SessionStatus",
    "TERMINAL_STATUSES",
]
