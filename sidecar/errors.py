"""Error taxonomy for the generation pipeline.

Every failure the sidecar can report ends up as exactly one ``ERROR:`` line
on stdout. The exception classes below carry the human-readable text for
that line; ``main.run`` is the single place that turns them into output.
"""


class GenerationError(Exception):
    """Base class for all pipeline failures reported to the host."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UsageError(GenerationError):
    """Bad or missing command-line arguments or environment overrides."""


class PathSafetyError(GenerationError):
    """The edit target escapes the apps directory or is not a document."""


class ExecutableNotFoundError(GenerationError):
    """The agent CLI could not be discovered."""


class GenerationTimeoutError(GenerationError):
    """The agent run exceeded its configured time budget."""


class GenerationCancelledError(GenerationError):
    """The agent run was cancelled from outside the pipeline."""


class MalformedOutputError(GenerationError):
    """The generated markup failed structural validation."""


class UpstreamRuntimeError(GenerationError):
    """Any other failure surfaced from the agent run."""
