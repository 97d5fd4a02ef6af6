"""Pydantic schemas for generation requests and session status.

All models use Pydantic v2 with strict type validation. A
``GenerationRequest`` is built once from the invocation and never mutated.
"""

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class GenerationMode(StrEnum):
    """Whether the agent writes a new app or updates an existing one."""

    CREATE = "create"
    EDIT = "edit"


class SessionStatus(StrEnum):
    """Generation session lifecycle status."""

    INIT = "init"
    STREAMING = "streaming"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    INJECTING = "injecting"
    EMITTING = "emitting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.DONE, SessionStatus.FAILED, SessionStatus.CANCELLED}
)


class GenerationRequest(BaseModel):
    """A validated request for one agent run.

    In edit mode ``edit_path`` and ``apps_dir`` are absolute, resolved paths
    and ``edit_path`` is strictly nested under ``apps_dir``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        min_length=1,
        description="Display name of the app",
        examples=["Todo"],
    )
    prompt: str = Field(
        min_length=1,
        description="What the app should do",
        examples=["simple list with checkboxes"],
    )
    mode: GenerationMode = GenerationMode.CREATE
    edit_path: Path | None = Field(
        default=None,
        description="Existing HTML document to update (edit mode only)",
    )
    apps_dir: Path | None = Field(
        default=None,
        description="Directory the agent may read in edit mode",
    )
    model: str = Field(description="Agent model identifier", examples=["sonnet"])
    max_turns: PositiveInt
    timeout_ms: PositiveInt

    @property
    def is_edit(self) -> bool:
        """True when the request updates an existing document."""
        return self.mode == GenerationMode.EDIT
