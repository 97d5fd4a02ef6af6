"""Turn raw command-line arguments into a validated GenerationRequest.

Flags are accepted as ``--flag value`` and ``--flag=value``. Any token that
is not a recognized flag is positional: the first one is the app name and
the remainder, joined with spaces, is the prompt.

Precedence for model, turn budget and timeout is: explicit flag, then the
TROVE_CLAUDE_* environment variables, then the built-in defaults.

Usage:
    >>> request = resolve_request(["Todo", "simple", "list"])
    >>> request.prompt
    'simple list'
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from config import Settings
from errors import PathSafetyError, UsageError
from models.schemas import GenerationMode, GenerationRequest
from sandbox.security import validate_edit_path, validate_name_prompt

logger = structlog.get_logger(__name__)

USAGE = (
    "Usage: trove-sidecar [--edit <html-path> --apps-dir <dir>] [--model <name>] "
    "[--max-turns <n>] [--timeout-ms <ms>] <name> <prompt>"
)

# flag -> (attribute on ParsedArgs, noun used in the "Missing ..." message)
FLAGS: dict[str, tuple[str, str]] = {
    "--edit": ("edit_path", "path"),
    "--apps-dir": ("apps_dir", "path"),
    "--model": ("model", "value"),
    "--max-turns": ("max_turns", "value"),
    "--timeout-ms": ("timeout_ms", "value"),
}

POSITIVE_INT_FLAGS = frozenset({"--max-turns", "--timeout-ms"})

# Messages for invalid environment overrides, keyed by settings field.
ENV_FIELD_ERRORS: dict[str, str] = {
    "claude_max_turns": "Max turns must be a positive integer",
    "claude_timeout_ms": "Timeout must be a positive integer",
}


@dataclass
class ParsedArgs:
    """Raw flag values and positional tokens before validation."""

    edit_path: str | None = None
    apps_dir: str | None = None
    model: str | None = None
    max_turns: int | None = None
    timeout_ms: int | None = None
    positional: list[str] = field(default_factory=list)


def parse_positive_int(raw: str, flag: str) -> int:
    """Parse a strictly positive base-10 integer or raise UsageError."""
    try:
        value = int(raw.strip(), 10)
    except ValueError:
        raise UsageError(f"{flag} must be a positive integer") from None
    if value <= 0:
        raise UsageError(f"{flag} must be a positive integer")
    return value


def _store(parsed: ParsedArgs, flag: str, raw: str) -> None:
    attr, _ = FLAGS[flag]
    value: str | int = raw
    if flag in POSITIVE_INT_FLAGS:
        value = parse_positive_int(raw, flag)
    setattr(parsed, attr, value)


def parse_args(argv: Sequence[str]) -> ParsedArgs:
    """Split argv into flag values and positional tokens.

    Raises:
        UsageError: A flag is missing its value or a numeric flag is not a
            positive integer.
    """
    parsed = ParsedArgs()
    i = 0
    while i < len(argv):
        arg = argv[i]

        if arg in FLAGS:
            if i + 1 >= len(argv) or not argv[i + 1]:
                _, noun = FLAGS[arg]
                raise UsageError(f"Missing {noun} after {arg}")
            _store(parsed, arg, argv[i + 1])
            i += 2
            continue

        flag, sep, raw = arg.partition("=")
        if sep and flag in FLAGS:
            _store(parsed, flag, raw)
            i += 1
            continue

        parsed.positional.append(arg)
        i += 1

    return parsed


def load_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Load settings from the environment and .env file.

    Values in ``overrides`` replace their environment counterparts before
    validation, so an invalid variable is reported only when no flag
    supersedes it.

    Raises:
        UsageError: An environment value that is still in effect is invalid.
    """
    try:
        return Settings(**(overrides or {}))
    except ValidationError as e:
        for error in e.errors():
            loc = error.get("loc") or ()
            field_name = str(loc[0]) if loc else ""
            if field_name in ENV_FIELD_ERRORS:
                raise UsageError(ENV_FIELD_ERRORS[field_name]) from None
        raise UsageError(f"Invalid environment configuration: {e}") from None


def resolve_request(
    argv: Sequence[str],
    settings: Settings | None = None,
) -> GenerationRequest:
    """Build a GenerationRequest from command-line arguments.

    See resolve_invocation, which also returns the effective settings.
    """
    request, _ = resolve_invocation(argv, settings)
    return request


def _flag_overrides(parsed: ParsedArgs) -> dict[str, Any]:
    values = {
        "claude_model": parsed.model,
        "claude_max_turns": parsed.max_turns,
        "claude_timeout_ms": parsed.timeout_ms,
    }
    return {name: value for name, value in values.items() if value}


def resolve_invocation(
    argv: Sequence[str],
    settings: Settings | None = None,
) -> tuple[GenerationRequest, Settings]:
    """Build a GenerationRequest and the settings it was resolved against.

    No subprocess is started and no executable lookup happens here, so every
    failure in this function is cheap and side-effect free.

    Args:
        argv: Arguments after the program name.
        settings: Environment-derived settings. Loaded fresh when omitted.

    Returns:
        The validated, immutable request and the effective settings, with
        flag values already applied.

    Raises:
        UsageError: Missing or malformed arguments or environment overrides.
        PathSafetyError: The edit target is outside the apps directory or is
            not an existing document.
    """
    parsed = parse_args(argv)

    if parsed.edit_path and not parsed.apps_dir:
        raise UsageError("--apps-dir is required when using --edit")

    if len(parsed.positional) < 2:
        raise UsageError(USAGE)

    name, *prompt_parts = parsed.positional
    prompt = " ".join(prompt_parts)

    ok, error = validate_name_prompt(name, prompt)
    if not ok:
        raise UsageError(error)

    overrides = _flag_overrides(parsed)
    if settings is not None:
        config = settings.model_copy(update=overrides)
    else:
        config = load_settings(overrides)

    mode = GenerationMode.CREATE
    edit_path = None
    apps_dir = None
    if parsed.edit_path:
        ok, error, resolved = validate_edit_path(parsed.apps_dir or "", parsed.edit_path)
        if not ok:
            logger.warning(
                "edit_path_rejected",
                edit_path=parsed.edit_path,
                apps_dir=parsed.apps_dir,
                reason=error,
            )
            raise PathSafetyError(error)
        mode = GenerationMode.EDIT
        edit_path = resolved
        apps_dir = Path(parsed.apps_dir or "").resolve()

    request = GenerationRequest(
        name=name.strip(),
        prompt=prompt.strip(),
        mode=mode,
        edit_path=edit_path,
        apps_dir=apps_dir,
        model=config.claude_model,
        max_turns=config.claude_max_turns,
        timeout_ms=config.claude_timeout_ms,
    )

    logger.info(
        "generation_request_resolved",
        name=request.name,
        mode=request.mode.value,
        model=request.model,
        max_turns=request.max_turns,
        timeout_ms=request.timeout_ms,
    )
    return request, config
