"""Patch operation types consumed by the patch engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EntityType(Enum):
    """Hints for ``replace_entity`` boundary detection."""

    HTML_ELEMENT = "html_element"
    REACT_COMPONENT = "react_component"
    FUNCTION = "function"
    CSS_RULE = "css_rule"
    INTERFACE = "interface"
    TYPE = "type"
    BRACKET_MATCHED = "bracket_matched"

    @classmethod
    def parse(cls, value: Any) -> EntityType | None:
        """Map a model-supplied hint to a member; unknown hints fall back to brace matching."""
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise ValueError(f"entity_type must be a string, got {type(value).__name__}")
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.BRACKET_MATCHED


@dataclass(frozen=True, slots=True)
class UpdateOperation:
    """Replace the single occurrence of ``old_str`` with ``new_str``."""

    old_str: str
    new_str: str = ""
    type: str = field(default="update", init=False)


@dataclass(frozen=True, slots=True)
class RewriteOperation:
    """Replace the entire file content."""

    content: str
    type: str = field(default="rewrite", init=False)


@dataclass(frozen=True, slots=True)
class ReplaceEntityOperation:
    """Replace the code entity that starts at ``selector``."""

    selector: str
    replacement: str
    entity_type: EntityType | None = None
    type: str = field(default="replace_entity", init=False)


@dataclass(frozen=True, slots=True)
class InvalidOperation:
    """Placeholder for an operation that failed validation.

    Kept in the batch so the engine can report it in order without
    aborting the remaining operations.
    """

    reason: str
    type: str = field(default="invalid", init=False)


PatchOperation = UpdateOperation | RewriteOperation | ReplaceEntityOperation


@dataclass(frozen=True, slots=True)
class EntityBoundary:
    """Half-open ``[start, end)`` range of an entity within a file's text."""

    start: int
    end: int


@dataclass(slots=True)
class PatchResult:
    """Outcome of applying a batch of operations to one file's content."""

    content: str
    applied_count: int = 0
    total_count: int = 0
    warnings: list[str] = field(default_factory=list)
    created: bool = False

    @property
    def applied(self) -> bool:
        return self.applied_count > 0


def operation_from_dict(data: dict[str, Any]) -> PatchOperation:
    """Build a typed operation from the JSON shape the model sends.

    Raises ``ValueError`` for unknown types or missing required fields.
    """
    if not isinstance(data, dict):
        raise ValueError(f"operation must be an object, got {type(data).__name__}")
    op_type = data.get("type")
    if op_type == "update":
        old_str = data.get("oldStr", data.get("old_str"))
        if not isinstance(old_str, str) or not old_str:
            raise ValueError("oldStr is required for update operations")
        new_str = data.get("newStr", data.get("new_str"))
        return UpdateOperation(old_str=old_str, new_str=new_str if isinstance(new_str, str) else "")
    if op_type == "rewrite":
        content = data.get("content")
        return RewriteOperation(content=content if isinstance(content, str) else "")
    if op_type == "replace_entity":
        selector = data.get("selector")
        if not isinstance(selector, str) or not selector:
            raise ValueError("selector is required for replace_entity operations")
        replacement = data.get("replacement")
        if not isinstance(replacement, str):
            raise ValueError("replacement is required for replace_entity operations")
        return ReplaceEntityOperation(
            selector=selector,
            replacement=replacement,
            entity_type=EntityType.parse(data.get("entity_type")),
        )
    raise ValueError(f"Unknown operation type: {op_type}")


def parse_operations(items: list[Any]) -> list[PatchOperation | InvalidOperation]:
    """Convert raw operation objects, keeping failures as :class:`InvalidOperation`."""
    parsed: list[PatchOperation | InvalidOperation] = []
    for item in items:
        try:
            parsed.append(operation_from_dict(item))
        except ValueError as exc:
            parsed.append(InvalidOperation(reason=str(exc)))
    return parsed
