"""Filesystem-facing safety checks and executable discovery.

This module provides edit-path containment and input validation, plus the
lookup of the agent CLI the generation session runs.
"""

from sandbox.locator import locate_agent_executable
from sandbox.security import (
    is_strictly_nested,
    validate_edit_path,
    validate_name_prompt,
)

__all__ = [
    "is_strictly_nested",
    "locate_agent_executable",
    "validate_edit_path",
    "validate_name_prompt",
]
