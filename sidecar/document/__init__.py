"""Post-processing of the generated HTML document.

This module exposes the normalizer that extracts and validates the agent's
output and the injector that adds the TroveStorage bridge.
"""

from document.normalizer import normalize_document, validate_structure
from document.storage_bridge import STORAGE_BRIDGE_SCRIPT, inject_storage_bridge

__all__ = [
    "STORAGE_BRIDGE_SCRIPT",
    "inject_storage_bridge",
    "normalize_document",
    "validate_structure",
]
