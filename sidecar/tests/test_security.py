"""Tests for sandbox/security.py -- edit path containment and input checks.

This module is security-critical: it is the only thing standing between an
edit request and an agent that may read arbitrary files. We test nesting
edge-cases (equal paths, siblings with a shared prefix, ``..`` traversal,
symlinks) thoroughly.
"""

import os
from pathlib import Path

import pytest

from sandbox.security import (
    APP_NAME_MAX_LENGTH,
    APP_PROMPT_MAX_LENGTH,
    NOT_A_DOCUMENT,
    OUTSIDE_APPS_DIR,
    is_strictly_nested,
    validate_edit_path,
    validate_name_prompt,
)

# =========================================================================
# is_strictly_nested
# =========================================================================


class TestIsStrictlyNested:
    """Pure path containment, no filesystem requirements."""

    def test_child_file(self) -> None:
        assert is_strictly_nested("/a/b", "/a/b/x.html") is True

    def test_deep_child(self) -> None:
        assert is_strictly_nested("/a/b", "/a/b/c/d/x.html") is True

    def test_sibling_directory(self) -> None:
        assert is_strictly_nested("/a/b", "/a/c/x.html") is False

    def test_shared_name_prefix(self) -> None:
        """/a/bc is not inside /a/b even though the strings share a prefix."""
        assert is_strictly_nested("/a/b", "/a/bc/x.html") is False

    def test_equal_paths(self) -> None:
        assert is_strictly_nested("/a/b", "/a/b") is False
        assert is_strictly_nested("/a/b", "/a/b/") is False

    def test_parent(self) -> None:
        assert is_strictly_nested("/a/b", "/a") is False

    def test_dotdot_traversal(self) -> None:
        assert is_strictly_nested("/a/b", "/a/b/../c/x.html") is False

    def test_dotdot_that_stays_inside(self) -> None:
        assert is_strictly_nested("/a/b", "/a/b/c/../x.html") is True

    def test_file_named_with_dots(self) -> None:
        """A name that merely starts with '..' is still a child."""
        assert is_strictly_nested("/a/b", "/a/b/..notes.html") is True

    def test_relative_paths_resolved(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert is_strictly_nested("apps", "apps/x.html") is True
        assert is_strictly_nested("apps", "other/x.html") is False

    def test_symlink_escape(self, tmp_path: Path) -> None:
        apps = tmp_path / "apps"
        apps.mkdir()
        secret = tmp_path / "secret.html"
        secret.write_text("<html></html>")
        link = apps / "link.html"
        os.symlink(secret, link)

        assert is_strictly_nested(apps, link) is False


# =========================================================================
# validate_edit_path
# =========================================================================


class TestValidateEditPath:
    """Containment plus the existing-document requirement."""

    def test_valid_document(self, tmp_path: Path) -> None:
        target = tmp_path / "todo.html"
        target.write_text("<html></html>")

        ok, err, resolved = validate_edit_path(str(tmp_path), str(target))

        assert ok is True
        assert err == ""
        assert resolved == str(target.resolve())

    def test_outside(self, tmp_path: Path) -> None:
        (tmp_path / "b").mkdir()
        (tmp_path / "c").mkdir()
        target = tmp_path / "c" / "x.html"
        target.write_text("<html></html>")

        ok, err, resolved = validate_edit_path(str(tmp_path / "b"), str(target))

        assert ok is False
        assert err == OUTSIDE_APPS_DIR
        assert resolved == ""

    def test_outside_checked_before_existence(self) -> None:
        ok, err, _ = validate_edit_path("/a/b", "/a/c/x.html")
        assert ok is False
        assert err == OUTSIDE_APPS_DIR

    def test_missing_file(self, tmp_path: Path) -> None:
        ok, err, _ = validate_edit_path(str(tmp_path), str(tmp_path / "missing.html"))
        assert ok is False
        assert err == NOT_A_DOCUMENT

    def test_wrong_extension(self, tmp_path: Path) -> None:
        target = tmp_path / "notes.txt"
        target.write_text("hello")
        ok, err, _ = validate_edit_path(str(tmp_path), str(target))
        assert ok is False
        assert err == NOT_A_DOCUMENT

    def test_directory_named_like_document(self, tmp_path: Path) -> None:
        (tmp_path / "dir.html").mkdir()
        ok, err, _ = validate_edit_path(str(tmp_path), str(tmp_path / "dir.html"))
        assert ok is False
        assert err == NOT_A_DOCUMENT

    @pytest.mark.parametrize(("apps_dir", "edit_path"), [("", "/a/x.html"), ("/a", "")])
    def test_empty_inputs(self, apps_dir: str, edit_path: str) -> None:
        ok, _, _ = validate_edit_path(apps_dir, edit_path)
        assert ok is False


# =========================================================================
# validate_name_prompt
# =========================================================================


class TestValidateNamePrompt:
    """Length and character checks on the user-supplied text."""

    def test_valid(self) -> None:
        assert validate_name_prompt("Todo", "simple list") == (True, "")

    def test_multiline_prompt_allowed(self) -> None:
        ok, _ = validate_name_prompt("Todo", "line one\nline two\twith tab")
        assert ok is True

    def test_unicode_allowed(self) -> None:
        ok, _ = validate_name_prompt("Café ☕", "une liste de tâches")
        assert ok is True

    @pytest.mark.parametrize(
        ("name", "prompt", "message"),
        [
            ("", "x", "App name is required"),
            ("  ", "x", "App name is required"),
            ("Todo", "", "Prompt is required"),
            ("Todo", " \n ", "Prompt is required"),
            ("x" * (APP_NAME_MAX_LENGTH + 1), "x", "App name must be at most 60 characters"),
            ("Todo", "x" * (APP_PROMPT_MAX_LENGTH + 1), "Prompt must be at most 2000 characters"),
            ("To\ndo", "x", "App name contains invalid characters"),
            ("Todo\x1b", "x", "App name contains invalid characters"),
            ("Todo", "bad\x00byte", "Prompt contains invalid characters"),
            ("Todo", "bell\x07", "Prompt contains invalid characters"),
        ],
    )
    def test_rejected(self, name: str, prompt: str, message: str) -> None:
        assert validate_name_prompt(name, prompt) == (False, message)

    def test_limits_apply_after_trimming(self) -> None:
        ok, _ = validate_name_prompt("  " + "x" * APP_NAME_MAX_LENGTH + "  ", "x")
        assert ok is True
