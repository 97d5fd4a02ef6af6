"""Discovery of the Claude Code CLI executable.

The sidecar is usually launched by a desktop app whose environment lacks the
PATH entries a user sets up in their shell profile. Discovery therefore tries
a fixed list of strategies, each a function of an environment mapping that
returns an executable path or None:

1. An explicit override (CLAUDE_CODE_PATH, then CLAUDE_PATH).
2. Every directory on PATH.
3. Conventional install directories.
4. A non-interactive login shell asked for ``command -v claude``.

Usage:
    >>> from sandbox.locator import locate_agent_executable
    >>> path = locate_agent_executable()
    >>> if path is None:
    ...     print("claude is not installed")
"""

import os
import shutil
import subprocess
from collections.abc import Callable, Mapping, Sequence

import structlog

logger = structlog.get_logger(__name__)

AGENT_EXECUTABLE_NAME = "claude"

ENV_OVERRIDE_KEYS: tuple[str, ...] = ("CLAUDE_CODE_PATH", "CLAUDE_PATH")

INSTALL_DIRS: tuple[str, ...] = (
    "/opt/homebrew/bin",
    "/usr/local/bin",
    "/usr/bin",
)

# Home-relative install directories, joined with $HOME when it is set.
HOME_INSTALL_DIRS: tuple[tuple[str, ...], ...] = (
    (".local", "bin"),
    (".claude", "local"),
)

FALLBACK_SHELLS: tuple[str, ...] = ("/bin/zsh", "/bin/bash", "/bin/sh")

LOGIN_SHELL_TIMEOUT_SECONDS = 10.0

Strategy = Callable[[Mapping[str, str]], str | None]


def is_executable(path: str) -> bool:
    """Return True if ``path`` is a regular file the process may execute."""
    try:
        return os.path.isfile(path) and os.access(path, os.X_OK)
    except (OSError, ValueError):
        return False


def find_in_search_path(path_value: str | None, exe_name: str) -> str | None:
    """Resolve ``exe_name`` against a PATH-like string."""
    if not path_value:
        return None
    return shutil.which(exe_name, path=path_value)


def build_search_env(
    executable_override: str | None,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Copy the environment with a configured executable path applied.

    A path that came from settings (including a .env file) becomes the
    CLAUDE_CODE_PATH override seen by the strategies.
    """
    env = dict(os.environ if base is None else base)
    if executable_override:
        env[ENV_OVERRIDE_KEYS[0]] = executable_override
    return env


def from_env_override(env: Mapping[str, str]) -> str | None:
    """Use the first override variable that is set.

    Mirrors the ``CLAUDE_CODE_PATH || CLAUDE_PATH`` lookup: a set but
    non-executable override does not fall through to the second variable.
    """
    for key in ENV_OVERRIDE_KEYS:
        value = env.get(key)
        if value:
            return value if is_executable(value) else None
    return None


def from_search_path(env: Mapping[str, str]) -> str | None:
    """Scan each directory of the process search path."""
    return find_in_search_path(env.get("PATH"), AGENT_EXECUTABLE_NAME)


def from_install_dirs(env: Mapping[str, str]) -> str | None:
    """Probe conventional installation directories."""
    directories = list(INSTALL_DIRS)
    home = env.get("HOME")
    if home:
        directories.extend(os.path.join(home, *parts) for parts in HOME_INSTALL_DIRS)

    for directory in directories:
        candidate = os.path.join(directory, AGENT_EXECUTABLE_NAME)
        if is_executable(candidate):
            return candidate
    return None


def _shell_candidates(env: Mapping[str, str]) -> list[str]:
    seen: list[str] = []
    for shell in (env.get("SHELL"), *FALLBACK_SHELLS):
        if shell and shell not in seen:
            seen.append(shell)
    return seen


def from_login_shell(env: Mapping[str, str]) -> str | None:
    """Ask a login shell where the executable lives.

    Recovers PATH entries that only exist after the user's shell profile has
    run (nvm, asdf, custom prefixes). Only the first output line is used.
    """
    for shell in _shell_candidates(env):
        try:
            completed = subprocess.run(
                [shell, "-lc", f"command -v {AGENT_EXECUTABLE_NAME}"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                timeout=LOGIN_SHELL_TIMEOUT_SECONDS,
                check=True,
                env=dict(env),
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("login_shell_lookup_failed", shell=shell, error=str(e))
            continue

        lines = completed.stdout.strip().splitlines()
        resolved = lines[0].strip() if lines else ""
        if resolved and is_executable(resolved):
            return resolved
    return None


DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    from_env_override,
    from_search_path,
    from_install_dirs,
    from_login_shell,
)


def locate_agent_executable(
    env: Mapping[str, str] | None = None,
    strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
) -> str | None:
    """Return the agent executable path, or None if no strategy finds one.

    Args:
        env: Environment to inspect. Defaults to ``os.environ``.
        strategies: Discovery strategies, tried in order; first hit wins.
    """
    environ: Mapping[str, str] = os.environ if env is None else env
    for strategy in strategies:
        try:
            found = strategy(environ)
        except Exception as e:
            logger.debug(
                "executable_strategy_failed",
                strategy=strategy.__name__,
                error=str(e),
            )
            continue
        if found:
            logger.info(
                "agent_executable_found",
                strategy=strategy.__name__,
                path=found,
            )
            return found

    logger.warning("agent_executable_not_found", name=AGENT_EXECUTABLE_NAME)
    return None
