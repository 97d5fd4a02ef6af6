"""Security validation for edit targets and user-supplied text.

This module keeps the agent's read scope inside the apps directory and
rejects names and prompts the host would never have produced.
"""

import os
from pathlib import Path

# Extension the host uses for generated documents.
DOCUMENT_EXTENSION = ".html"

APP_NAME_MAX_LENGTH = 60
APP_PROMPT_MAX_LENGTH = 2000

# Control characters allowed inside a prompt.
PROMPT_ALLOWED_CONTROL = frozenset({"\n", "\r", "\t"})

OUTSIDE_APPS_DIR = "Edit path is outside of apps directory"
NOT_A_DOCUMENT = f"Edit path must be an existing {DOCUMENT_EXTENSION} file"


def is_strictly_nested(base: str | Path, target: str | Path) -> bool:
    """Return True when ``target`` lies strictly below ``base``.

    Both paths are resolved to absolute form first. The relative path from
    base to target must not start with a ``..`` component, must not be
    absolute and must not be empty (``target == base``).

    Examples:
        >>> is_strictly_nested("/a/b", "/a/b/x.html")
        True
        >>> is_strictly_nested("/a/b", "/a/c/x.html")
        False
        >>> is_strictly_nested("/a/b", "/a/b")
        False
    """
    base_path = Path(base).resolve()
    target_path = Path(target).resolve()
    try:
        rel = os.path.relpath(target_path, base_path)
    except ValueError:
        # Different drives on Windows.
        return False

    if rel in ("", ".", os.sep) or os.path.isabs(rel):
        return False

    components = Path(rel).parts
    return bool(components) and components[0] != os.pardir


def validate_edit_path(apps_dir: str, edit_path: str) -> tuple[bool, str, str]:
    """Validate the document an edit run is allowed to read.

    Args:
        apps_dir: Directory holding the generated apps.
        edit_path: Path of the existing document to update.

    Returns:
        A tuple of (is_valid, error_message, resolved_absolute_path).
        If valid, error_message is empty and resolved_absolute_path holds
        the resolved document path.
        If invalid, error_message explains the issue and
        resolved_absolute_path is empty.

    Examples:
        >>> validate_edit_path("/a/b", "/a/c/x.html")
        (False, 'Edit path is outside of apps directory', '')
    """
    if not apps_dir or not edit_path:
        return False, NOT_A_DOCUMENT, ""

    try:
        nested = is_strictly_nested(apps_dir, edit_path)
        resolved = Path(edit_path).resolve()
    except (OSError, RuntimeError):
        return False, NOT_A_DOCUMENT, ""

    if not nested:
        return False, OUTSIDE_APPS_DIR, ""

    try:
        is_file = resolved.is_file()
    except OSError:
        is_file = False

    if not is_file or resolved.suffix != DOCUMENT_EXTENSION:
        return False, NOT_A_DOCUMENT, ""

    return True, "", str(resolved)


def _has_control_chars(text: str, allowed: frozenset[str] = frozenset()) -> bool:
    return any(
        (ord(ch) < 0x20 or 0x7F <= ord(ch) < 0xA0) and ch not in allowed
        for ch in text
    )


def validate_name_prompt(name: str, prompt: str) -> tuple[bool, str]:
    """Validate the app name and prompt text.

    Both values are checked after trimming surrounding whitespace.

    Returns:
        A tuple of (is_valid, error_message).

    Examples:
        >>> validate_name_prompt("Todo", "simple list")
        (True, '')
        >>> validate_name_prompt("  ", "simple list")
        (False, 'App name is required')
    """
    name = name.strip()
    prompt = prompt.strip()

    if not name:
        return False, "App name is required"
    if not prompt:
        return False, "Prompt is required"
    if len(name) > APP_NAME_MAX_LENGTH:
        return False, f"App name must be at most {APP_NAME_MAX_LENGTH} characters"
    if len(prompt) > APP_PROMPT_MAX_LENGTH:
        return False, f"Prompt must be at most {APP_PROMPT_MAX_LENGTH} characters"
    if _has_control_chars(name):
        return False, "App name contains invalid characters"
    if "\x00" in prompt or _has_control_chars(prompt, PROMPT_ALLOWED_CONTROL):
        return False, "Prompt contains invalid characters"

    return True, ""
