"""Entity boundary detection for ``replace_entity`` operations.

Boundaries are found with substring scans and bracket/tag counting rather
than parsing. Every detector has the same shape::

    detector(content, index, selector) -> EntityBoundary | None

where *index* is the offset at which *selector* was found. ``None`` means
no balanced end could be located.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from atelier.types.patch import EntityBoundary, EntityType

BoundaryDetector = Callable[[str, int, str], "EntityBoundary | None"]

_TAG_NAME = re.compile(r"<([A-Za-z][\w:-]*)(?=[\s/>]|$)")


def find_selector(content: str, selector: str) -> tuple[int, str] | None:
    """Locate *selector*, tolerating leading/trailing whitespace differences.

    Variants are tried in order: exact, left-trimmed, right-trimmed, trimmed
    on both sides. Returns ``(index, matched_variant)`` for the first variant
    that occurs, or ``None``.
    """
    variants: list[str] = []
    for variant in (selector, selector.lstrip(), selector.rstrip(), selector.strip()):
        if variant and variant not in variants:
            variants.append(variant)

    for variant in variants:
        index = content.find(variant)
        if index != -1:
            return index, variant
    return None


def infer_entity_type(selector: str) -> EntityType:
    """Guess the entity kind from the shape of the selector."""
    stripped = selector.strip()
    if stripped.startswith("<") and _TAG_NAME.match(stripped):
        return EntityType.HTML_ELEMENT
    if "React.FC" in stripped or ": FC<" in stripped:
        return EntityType.REACT_COMPONENT
    if "function " in stripped or " = (" in stripped or "=>" in stripped:
        return EntityType.FUNCTION
    if stripped.startswith((".", "#")):
        return EntityType.CSS_RULE
    if "interface " in stripped:
        return EntityType.INTERFACE
    if "type " in stripped:
        return EntityType.TYPE
    return EntityType.BRACKET_MATCHED


def detect_bracket_boundary(content: str, index: int, selector: str = "") -> EntityBoundary | None:
    """From the first ``{`` at or after *index*, close at the matching ``}``."""
    if index < 0 or index >= len(content):
        return None
    open_pos = content.find("{", index)
    if open_pos == -1:
        return None

    depth = 0
    for pos in range(open_pos, len(content)):
        char = content[pos]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return EntityBoundary(start=index, end=pos + 1)
    return None


def detect_html_element_boundary(content: str, index: int, selector: str) -> EntityBoundary | None:
    """Match the element opened at *index* with its balancing close tag.

    Nested elements with the same tag name are counted; nested
    self-closing ones are not. A self-closing selector ends at the next
    ``/>``.
    """
    if index < 0 or index >= len(content):
        return None
    tag_match = _TAG_NAME.match(selector.strip())
    if tag_match is None:
        return None
    tag = re.escape(tag_match.group(1))

    if "/>" in selector:
        close_at = content.find("/>", index)
        if close_at == -1:
            return None
        return EntityBoundary(start=index, end=close_at + 2)

    open_tag = re.compile(rf"<{tag}(?:\s[^>]*)?>")
    close_tag = re.compile(rf"</{tag}\s*>")

    depth = 0
    pos = index
    while pos < len(content):
        close = close_tag.search(content, pos)
        if close is None:
            return None
        opened = open_tag.search(content, pos, close.start())
        if opened is not None:
            if not opened.group(0).endswith("/>"):
                depth += 1
            pos = opened.end()
            continue
        depth -= 1
        if depth <= 0:
            return EntityBoundary(start=index, end=close.end())
        pos = close.end()
    return None


_DETECTORS: dict[EntityType, BoundaryDetector] = {
    EntityType.HTML_ELEMENT: detect_html_element_boundary,
    EntityType.REACT_COMPONENT: detect_bracket_boundary,
    EntityType.FUNCTION: detect_bracket_boundary,
    EntityType.CSS_RULE: detect_bracket_boundary,
    EntityType.INTERFACE: detect_bracket_boundary,
    EntityType.TYPE: detect_bracket_boundary,
    EntityType.BRACKET_MATCHED: detect_bracket_boundary,
}


def detect_boundary(
    content: str,
    index: int,
    selector: str,
    entity_type: EntityType | None = None,
) -> EntityBoundary | None:
    """Compute the boundary of the entity starting at *index*.

    When *entity_type* is omitted it is inferred from *selector*.
    """
    kind = entity_type or infer_entity_type(selector)
    return _DETECTORS[kind](content, index, selector)
