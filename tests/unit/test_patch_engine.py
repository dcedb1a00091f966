"""Tests for atelier.patch — operations, boundaries and VFS application."""

from __future__ import annotations

import pytest

from atelier.patch import (
    apply_operations,
    apply_patch_to_vfs,
    detect_boundary,
    detect_bracket_boundary,
    detect_html_element_boundary,
    find_selector,
    infer_entity_type,
)
from atelier.patch.engine import truncate
from atelier.types.patch import (
    EntityType,
    InvalidOperation,
    ReplaceEntityOperation,
    RewriteOperation,
    UpdateOperation,
    operation_from_dict,
    parse_operations,
)
from atelier.vfs import MemoryFileSystem
from tests.conftest import PROJECT


class TestUpdate:
    def test_unique_match_replaced(self):
        result = apply_operations("color: red;", [UpdateOperation("red", "blue")])
        assert result.content == "color: blue;"
        assert result.applied_count == 1
        assert result.warnings == []

    def test_not_found_warns_and_keeps_content(self):
        result = apply_operations("abc", [UpdateOperation("xyz", "q")])
        assert result.content == "abc"
        assert not result.applied
        assert result.warnings == ['Operation 1: oldStr not found in file. Expected: "xyz"']

    def test_ambiguous_match_warns_with_count(self):
        result = apply_operations("a a a", [UpdateOperation("a", "b")])
        assert result.content == "a a a"
        assert "appears 3 times" in result.warnings[0]
        assert "must be unique" in result.warnings[0]

    def test_empty_new_str_deletes(self):
        result = apply_operations("keep drop keep2", [UpdateOperation(" drop", "")])
        assert result.content == "keep keep2"

    def test_later_operations_see_earlier_edits(self):
        result = apply_operations("one", [UpdateOperation("one", "two"), UpdateOperation("two", "three")])
        assert result.content == "three"
        assert result.applied_count == 2

    def test_long_old_str_truncated_in_warning(self):
        missing = "x" * 250
        result = apply_operations("abc", [UpdateOperation(missing, "")])
        assert '"' + "x" * 97 + '..."' in result.warnings[0]


class TestRewrite:
    def test_rewrite_replaces_everything(self):
        result = apply_operations("old", [RewriteOperation("new content")])
        assert result.content == "new content"

    def test_rewrite_is_idempotent(self):
        once = apply_operations("old", [RewriteOperation("X")])
        twice = apply_operations(once.content, [RewriteOperation("X")])
        assert once.content == twice.content == "X"

    def test_rewrite_with_empty_content(self):
        result = apply_operations("something", [RewriteOperation("")])
        assert result.content == ""
        assert result.applied

    def test_missing_file_is_created(self):
        result = apply_operations(None, [RewriteOperation("<p>hi</p>")])
        assert result.created
        assert result.content == "<p>hi</p>"

    def test_missing_file_not_created_when_nothing_applies(self):
        result = apply_operations(None, [UpdateOperation("a", "b")])
        assert not result.created
        assert not result.applied


class TestReplaceEntity:
    def test_function_replaced_through_closing_brace(self):
        content = "function f(a) {\n  if (a) { return 1; }\n  return 2;\n}\n\nf(1);\n"
        op = ReplaceEntityOperation("function f(", "function f(a) {\n  return 3;\n}")
        result = apply_operations(content, [op])
        assert result.content == "function f(a) {\n  return 3;\n}\n\nf(1);\n"

    def test_selector_with_leading_whitespace_matches(self):
        content = "  .btn {\n    color: red;\n  }\n"
        op = ReplaceEntityOperation("    .btn {", ".btn { color: blue; }")
        result = apply_operations(content, [op])
        assert result.content == "  .btn { color: blue; }\n"

    def test_html_element_with_nested_same_tag(self):
        content = "<div id=\"a\"><div>inner</div></div><p>after</p>"
        op = ReplaceEntityOperation('<div id="a">', "<section></section>")
        result = apply_operations(content, [op])
        assert result.content == "<section></section><p>after</p>"

    def test_selector_not_found(self):
        result = apply_operations("x", [ReplaceEntityOperation("function missing(", "y")])
        assert result.warnings == ['Operation 1: Selector not found: "function missing("']

    def test_unbalanced_entity_reports_boundary_failure(self):
        result = apply_operations("function f() {\n  return 1;\n", [ReplaceEntityOperation("function f(", "x")])
        assert "Could not detect entity boundary" in result.warnings[0]
        assert result.content == "function f() {\n  return 1;\n"


class TestBatch:
    def test_three_operations_one_failing(self):
        content = "alpha\nbeta\ngamma\n"
        ops = [
            UpdateOperation("alpha", "ALPHA"),
            UpdateOperation("delta", "DELTA"),
            UpdateOperation("gamma", "GAMMA"),
        ]
        result = apply_operations(content, ops)
        assert result.content == "ALPHA\nbeta\nGAMMA\n"
        assert result.applied_count == 2
        assert result.total_count == 3
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Operation 2:")

    def test_invalid_operation_kept_in_order(self):
        ops = parse_operations([
            {"type": "update", "oldStr": "a", "newStr": "b"},
            {"type": "bogus"},
            {"type": "update", "newStr": "x"},
        ])
        assert isinstance(ops[1], InvalidOperation)
        result = apply_operations("a", ops)
        assert result.content == "b"
        assert result.warnings == [
            "Operation 2: Unknown operation type: bogus",
            "Operation 3: oldStr is required for update operations",
        ]


class TestOperationParsing:
    def test_snake_case_keys_accepted(self):
        op = operation_from_dict({"type": "update", "old_str": "a", "new_str": "b"})
        assert op == UpdateOperation("a", "b")

    def test_replace_entity_hint_parsed(self):
        op = operation_from_dict({
            "type": "replace_entity", "selector": ".a {", "replacement": "", "entity_type": "css_rule",
        })
        assert isinstance(op, ReplaceEntityOperation)
        assert op.entity_type is EntityType.CSS_RULE

    def test_unknown_hint_falls_back_to_brackets(self):
        assert EntityType.parse("something") is EntityType.BRACKET_MATCHED
        assert EntityType.parse(None) is None

    def test_non_string_hint_invalidates_operation(self):
        with pytest.raises(ValueError, match="entity_type must be a string"):
            EntityType.parse(5)
        [op] = parse_operations([
            {"type": "replace_entity", "selector": ".a {", "replacement": "", "entity_type": 5},
        ])
        assert isinstance(op, InvalidOperation)

    def test_non_object_rejected(self):
        with pytest.raises(ValueError):
            operation_from_dict("update")  # type: ignore[arg-type]


class TestBoundaries:
    def test_find_selector_variants(self):
        assert find_selector("abc .x {", ".x {") == (4, ".x {")
        assert find_selector("abc .x {", "  .x {  ") == (4, ".x {")
        assert find_selector("abc", "zzz") is None

    def test_infer_entity_type(self):
        assert infer_entity_type("<section class='a'>") is EntityType.HTML_ELEMENT
        assert infer_entity_type("const App: React.FC = () => {") is EntityType.REACT_COMPONENT
        assert infer_entity_type("function go(") is EntityType.FUNCTION
        assert infer_entity_type("const go = (") is EntityType.FUNCTION
        assert infer_entity_type(".card {") is EntityType.CSS_RULE
        assert infer_entity_type("#main {") is EntityType.CSS_RULE
        assert infer_entity_type("interface Props {") is EntityType.INTERFACE
        assert infer_entity_type("type Props = {") is EntityType.TYPE
        assert infer_entity_type("@media screen {") is EntityType.BRACKET_MATCHED

    def test_bracket_boundary(self):
        content = "a { b { c } } d"
        boundary = detect_bracket_boundary(content, 0)
        assert boundary is not None
        assert content[boundary.start:boundary.end] == "a { b { c } }"

    def test_bracket_boundary_without_brace(self):
        assert detect_bracket_boundary("no braces", 0) is None

    def test_html_self_closing(self):
        content = '<img src="a.png" /><p>x</p>'
        boundary = detect_html_element_boundary(content, 0, '<img src="a.png" />')
        assert boundary is not None
        assert content[boundary.start:boundary.end] == '<img src="a.png" />'

    def test_html_unclosed(self):
        assert detect_html_element_boundary("<div><p>x</p>", 0, "<div>") is None

    def test_detect_boundary_uses_hint(self):
        content = "<div>{ not html }</div>"
        boundary = detect_boundary(content, 0, "<div>", EntityType.BRACKET_MATCHED)
        assert boundary is not None
        assert content[boundary.start:boundary.end] == "<div>{ not html }"

    def test_truncate(self):
        assert truncate("short") == "short"
        assert truncate("abcdefghij", 5) == "ab..."


class TestApplyPatchToVfs:
    @pytest.mark.asyncio
    async def test_updates_existing_file(self, vfs: MemoryFileSystem):
        outcome = await apply_patch_to_vfs(
            vfs, PROJECT, "/styles.css", [UpdateOperation("color: red;", "color: blue;")],
        )
        assert outcome.applied
        assert outcome.summary == "Applied 1/1 operations to /styles.css"
        read = await vfs.read_file(PROJECT, "/styles.css")
        assert "color: blue;" in read.content

    @pytest.mark.asyncio
    async def test_creates_missing_file(self, vfs: MemoryFileSystem):
        outcome = await apply_patch_to_vfs(
            vfs, PROJECT, "/pages/about.html", [RewriteOperation("<h1>About</h1>")],
        )
        assert outcome.applied
        read = await vfs.read_file(PROJECT, "/pages/about.html")
        assert read.content == "<h1>About</h1>"

    @pytest.mark.asyncio
    async def test_nothing_applied_leaves_file_untouched(self, vfs: MemoryFileSystem):
        before = (await vfs.read_file(PROJECT, "/app.js")).content
        outcome = await apply_patch_to_vfs(vfs, PROJECT, "/app.js", [UpdateOperation("nope", "x")])
        assert not outcome.applied
        assert outcome.summary == "No operations applied to /app.js"
        assert "Warnings:" in outcome.render()
        assert (await vfs.read_file(PROJECT, "/app.js")).content == before

    @pytest.mark.asyncio
    async def test_relative_path_rejected(self, vfs: MemoryFileSystem):
        outcome = await apply_patch_to_vfs(vfs, PROJECT, "app.js", [RewriteOperation("x")])
        assert not outcome.applied
        assert outcome.summary == "Invalid file path"

    @pytest.mark.asyncio
    async def test_empty_operations_explains_format(self, vfs: MemoryFileSystem):
        outcome = await apply_patch_to_vfs(vfs, PROJECT, "/app.js", [])
        assert outcome.summary == "Missing operations parameter"
        assert "Required format" in outcome.warnings[0]
