"""Tests for config.py -- environment settings and logging setup."""

from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from config import (
    DEFAULT_MAX_TURNS,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_MS,
    Settings,
    configure_logging,
)


class TestSettings:
    def test_defaults(self, settings: Settings) -> None:
        assert settings.claude_model == DEFAULT_MODEL == "sonnet"
        assert settings.claude_max_turns == DEFAULT_MAX_TURNS == 3
        assert settings.claude_timeout_ms == DEFAULT_TIMEOUT_MS == 180_000
        assert settings.claude_code_path is None
        assert settings.log_format == "json"

    def test_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TROVE_CLAUDE_MODEL", "opus")
        monkeypatch.setenv("TROVE_CLAUDE_TIMEOUT_MS", "60000")
        monkeypatch.setenv("TROVE_LOG_LEVEL", "DEBUG")
        settings = Settings(_env_file=None)

        assert settings.claude_model == "opus"
        assert settings.claude_timeout_ms == 60_000
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("key", ["CLAUDE_CODE_PATH", "CLAUDE_PATH"])
    def test_executable_aliases(self, monkeypatch: pytest.MonkeyPatch, key: str) -> None:
        monkeypatch.setenv(key, "/opt/claude")
        assert Settings(_env_file=None).claude_code_path == "/opt/claude"

    @pytest.mark.parametrize("value", ["0", "-3", "many"])
    def test_invalid_max_turns(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv("TROVE_CLAUDE_MAX_TURNS", value)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_empty_variable_is_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TROVE_CLAUDE_TIMEOUT_MS", "")
        assert Settings(_env_file=None).claude_timeout_ms == DEFAULT_TIMEOUT_MS

    def test_init_value_replaces_invalid_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TROVE_CLAUDE_MAX_TURNS", "many")
        assert Settings(_env_file=None, claude_max_turns=5).claude_max_turns == 5

    def test_env_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("TROVE_CLAUDE_MODEL=haiku\n")
        assert Settings(_env_file=str(env_file)).claude_model == "haiku"


@pytest.fixture(autouse=True)
def _restore_structlog() -> Iterator[None]:
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    @pytest.mark.parametrize("log_format", ["json", "text"])
    def test_logs_to_stderr(
        self, capsys: pytest.CaptureFixture[str], log_format: str,
    ) -> None:
        configure_logging("INFO", log_format)
        structlog.get_logger("test").info("logging_configured", check=True)

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "logging_configured" in captured.err

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("WARNING", "json")
        structlog.get_logger("test").info("too_quiet")

        assert "too_quiet" not in capsys.readouterr().err
