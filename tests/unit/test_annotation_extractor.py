from pathlib import Path

from metamode.annotations.extractor import (
    embedded_object_pass,
    parse_annotations,
    parse_annotations_file,
    parse_comment_block,
    structured_comment_pass,
)
from metamode.annotations.types import AiShape, DepsShape, Origin, Status, Visibility

ALPHA_SOURCE = """\
/**
 * @mm:id=a
 * @mm:desc=Alpha
 */
export const Alpha = 1
"""

WIDGET_SOURCE = """\
/**
 * @mm:id=widget
 * @mm:desc=JSDoc description
 * @mm:tags=ui
 */
export const Widget = {
  __mm: { desc: 'Runtime description', status: 'beta' },
  render() {},
}
"""


def test_structured_comment_attaches_following_declaration() -> None:
    result = parse_annotations(ALPHA_SOURCE, "alpha.ts")
    assert result.warnings == []
    assert len(result.annotations) == 1
    parsed = result.annotations[0]
    assert parsed.annotation.id == "a"
    assert parsed.annotation.desc == "Alpha"
    assert parsed.source is Origin.STRUCTURED_COMMENT
    assert parsed.line == 1
    assert parsed.entity_name == "Alpha"


def test_embedded_object_overrides_comment_for_same_entity() -> None:
    result = parse_annotations(WIDGET_SOURCE, "widget.ts")
    assert len(result.annotations) == 1
    parsed = result.annotations[0]
    assert parsed.annotation.desc == "Runtime description"
    assert parsed.annotation.id == "widget"
    assert parsed.annotation.tags == ["ui"]
    assert parsed.annotation.status is Status.BETA
    assert parsed.source is Origin.EMBEDDED_OBJECT
    assert parsed.entity_name == "Widget"


def test_unmatched_embedded_object_is_kept_separately() -> None:
    source = """\
/**
 * @mm:id=first
 */
function first() {}

export const second = {
  __mm: { id: 'second', desc: 'Second' },
}
"""
    result = parse_annotations(source, "mixed.js")
    assert [parsed.annotation.id for parsed in result.annotations] == ["first", "second"]
    first, second = result.annotations
    assert first.source is Origin.STRUCTURED_COMMENT
    assert first.entity_name == "first"
    assert second.source is Origin.EMBEDDED_OBJECT
    assert second.line == 7


def test_invalid_enum_values_are_dropped() -> None:
    record = parse_comment_block(
        "/**\n * @mm:id=x\n * @mm:visibility=secret\n * @mm:status=unknown\n */"
    )
    assert record.id == "x"
    assert record.visibility is None
    assert record.status is None


def test_phase_takes_leading_integer_and_ignores_garbage() -> None:
    assert parse_comment_block("# @mm:phase=3rd").phase == 3
    assert parse_comment_block("# @mm:phase=soon").phase is None


def test_field_aliases() -> None:
    record = parse_comment_block("/**\n * @mm:description=Long form\n * @mm:ver=1.2.0\n */")
    assert record.desc == "Long form"
    assert record.version == "1.2.0"


def test_flat_deps_are_runtime() -> None:
    record = parse_comment_block("// @mm:deps=a, b")
    assert record.deps is not None
    assert record.deps.shape is DepsShape.FLAT
    assert record.deps.runtime == ["a", "b"]
    assert record.deps.as_buckets() == {"runtime": ["a", "b"]}


def test_prefixed_deps_are_classified() -> None:
    record = parse_comment_block("// @mm:deps=runtime:a, build:b, optional:c, d")
    assert record.deps is not None
    assert record.deps.shape is DepsShape.CLASSIFIED
    assert record.deps.runtime == ["a", "d"]
    assert record.deps.build == ["b"]
    assert record.deps.optional == ["c"]


def test_nested_embedded_deps_and_ai() -> None:
    source = """\
export const Engine = {
  __mm: {
    id: 'engine',
    deps: { runtime: ['core'], build: ['codegen'] },
    ai: { summary: 'Runs things', examples: ['run()', 'stop()'] },
  },
}
"""
    records, warnings = embedded_object_pass(source)
    assert warnings == []
    record = records[0].annotation
    assert record.deps is not None
    assert record.deps.runtime == ["core"]
    assert record.deps.build == ["codegen"]
    assert record.ai is not None
    assert record.ai.shape is AiShape.STRUCTURED
    assert record.ai.summary == "Runs things"
    assert record.ai.examples == ["run()", "stop()"]
    assert records[0].entity_name == "Engine"


def test_ai_text_and_structured_subkeys() -> None:
    text = parse_comment_block("# @mm:ai=Plain hint")
    assert text.ai is not None
    assert text.ai.shape is AiShape.TEXT
    assert text.ai.summary_text() == "Plain hint"

    structured = parse_comment_block(
        "/**\n * @mm:ai=Plain hint\n * @mm:ai:summary=Short\n * @mm:ai.usage=call it\n */"
    )
    assert structured.ai is not None
    assert structured.ai.is_structured
    assert structured.ai.summary == "Short"
    assert structured.ai.usage == "call it"


def test_bare_ai_never_replaces_structured_value() -> None:
    record = parse_comment_block("/**\n * @mm:ai:summary=Short\n * @mm:ai=Plain\n */")
    assert record.ai is not None
    assert record.ai.shape is AiShape.STRUCTURED
    assert record.ai.summary == "Short"


def test_ai_summary_prefix_builds_structured_value() -> None:
    record = parse_comment_block("// @mm:ai=summary: Does X")
    assert record.ai is not None
    assert record.ai.shape is AiShape.STRUCTURED
    assert record.ai.summary == "Does X"


def test_hash_comment_run_and_python_declaration() -> None:
    source = """\
import os

# @mm:id=loader
# @mm:desc=Loads files
# @mm:visibility=internal
@cache
def load(path):
    return path
"""
    result = parse_annotations(source, "loader.py")
    parsed = result.annotations[0]
    assert parsed.annotation.id == "loader"
    assert parsed.annotation.visibility is Visibility.INTERNAL
    assert parsed.line == 3
    assert parsed.entity_name == "load"


def test_python_embedded_dict() -> None:
    source = '__mm = {"id": "settings", "desc": "Runtime settings", "tags": ["config"]}\n'
    result = parse_annotations(source, "settings.py")
    record = result.annotations[0].annotation
    assert record.id == "settings"
    assert record.desc == "Runtime settings"
    assert record.tags == ["config"]


def test_unterminated_embedded_object_warns() -> None:
    result = parse_annotations("const x = {\n  __mm: { id: 'x',\n", "broken.ts")
    assert result.annotations == []
    assert result.warnings == ["Unterminated __mm object at line 2"]


def test_comment_without_fields_is_ignored() -> None:
    assert structured_comment_pass("/** plain doc */\nconst a = 1\n") == []


def test_vue_script_regions_report_file_line_numbers() -> None:
    source = """\
<template>
  <div />
</template>

<script setup lang="ts">
/**
 * @mm:id=panel
 * @mm:desc=Panel view
 */
const Panel = {}
</script>
"""
    result = parse_annotations(source, "Panel.vue")
    assert len(result.annotations) == 1
    parsed = result.annotations[0]
    assert parsed.annotation.id == "panel"
    assert parsed.line == 6
    assert parsed.entity_name == "Panel"


def test_composite_file_without_script_uses_whole_text() -> None:
    source = "<div>\n<!-- x -->\n/** @mm:id=h */\n</div>\n"
    result = parse_annotations(source, "page.html")
    assert [parsed.annotation.id for parsed in result.annotations] == ["h"]
    assert result.annotations[0].line == 3


def test_multiple_script_regions_keep_absolute_lines() -> None:
    source = """\
<script>
// @mm:id=first
const First = 1
</script>
<template>
// @mm:id=outside
</template>
<script setup>
/**
 * @mm:id=second
 */
const Second = 2
</script>
"""
    result = parse_annotations(source, "Pair.vue")
    assert [parsed.annotation.id for parsed in result.annotations] == ["first", "second"]
    assert [parsed.line for parsed in result.annotations] == [2, 9]
    assert [parsed.entity_name for parsed in result.annotations] == ["First", "Second"]


def test_missing_file_is_a_warning(tmp_path: Path) -> None:
    result = parse_annotations_file(tmp_path / "nope.ts")
    assert result.annotations == []
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("File not found:")


def test_undecodable_file_is_a_warning(tmp_path: Path) -> None:
    path = tmp_path / "bad.ts"
    path.write_bytes(b"\xff\xfe\xfa")
    result = parse_annotations_file(path)
    assert result.annotations == []
    assert result.warnings[0].startswith("Failed to read file:")
