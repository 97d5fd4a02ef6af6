"""Sidecar configuration using Pydantic Settings.

This module provides centralized configuration management for the Trove
sidecar. All settings can be overridden via environment variables or a .env
file; command-line flags take precedence over both (see request_resolver).
"""

import logging
import sys

import structlog
from pydantic import AliasChoices, Field, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = "sonnet"
DEFAULT_MAX_TURNS = 3
DEFAULT_TIMEOUT_MS = 180_000


class Settings(BaseSettings):
    """Sidecar settings loaded from environment variables.

    Attributes:
        claude_model: Model identifier passed to the agent (TROVE_CLAUDE_MODEL).
        claude_max_turns: Turn budget for one agent run (TROVE_CLAUDE_MAX_TURNS).
        claude_timeout_ms: Wall-clock budget for one agent run in
            milliseconds (TROVE_CLAUDE_TIMEOUT_MS).
        claude_code_path: Explicit path to the Claude Code CLI, consulted
            before any PATH search (CLAUDE_CODE_PATH or CLAUDE_PATH).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_format: Log format (json or text).
    """

    # Agent Configuration
    claude_model: str = DEFAULT_MODEL
    claude_max_turns: PositiveInt = DEFAULT_MAX_TURNS
    claude_timeout_ms: PositiveInt = DEFAULT_TIMEOUT_MS
    claude_code_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CLAUDE_CODE_PATH", "CLAUDE_PATH"),
    )

    # Logging goes to stderr; stdout is reserved for the line protocol.
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(
        env_prefix="TROVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging for the sidecar.

    Sets up structlog with appropriate processors for either JSON or console
    output. Everything is written to stderr so that log records never
    interleave with protocol lines on stdout.

    Args:
        log_level: The minimum log level to emit (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format - 'json' for the packaged sidecar, 'text'
            for development.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
