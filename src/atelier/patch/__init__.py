"""Deterministic, parser-free patch engine."""

from atelier.patch.boundaries import (
    detect_boundary,
    detect_bracket_boundary,
    detect_html_element_boundary,
    find_selector,
    infer_entity_type,
)
from atelier.patch.engine import (
    FilePatchOutcome,
    apply_operations,
    apply_patch_to_vfs,
    normalize_path,
)

__all__ = [
    "FilePatchOutcome",
    "apply_operations",
    "apply_patch_to_vfs",
    "detect_boundary",
    "detect_bracket_boundary",
    "detect_html_element_boundary",
    "find_selector",
    "infer_entity_type",
    "normalize_path",
]
