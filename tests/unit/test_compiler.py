from pathlib import Path

from metamode.annotations.extractor import parse_annotations
from metamode.annotations.types import DepClass
from metamode.compiler.builder import annotation_key, compile_database, compile_project
from metamode.compiler.types import Database

CORE = """\
/**
 * @mm:id=core
 * @mm:desc=Core runtime
 * @mm:tags=lib,core
 * @mm:status=stable
 * @mm:phase=1
 */
export const Core = {}
"""

UI = """\
/**
 * @mm:id=ui
 * @mm:desc=User interface
 * @mm:tags=ui
 * @mm:deps=runtime:core, build:codegen, optional:missing
 * @mm:visibility=internal
 */
export class Ui {}
"""

TOOL = """\
# @mm:id=tool
# @mm:desc=Helper tool
# @mm:deps=core, ui
def tool():
    pass
"""


def _corpus():
    return [
        parse_annotations(CORE, "/repo/src/core.ts"),
        parse_annotations(UI, "/repo/src/ui.ts"),
        parse_annotations(TOOL, "/repo/scripts/tool.py"),
    ]


def test_basic_compile() -> None:
    source = "/**\n * @mm:id=a\n * @mm:desc=Alpha\n */\nconst Alpha = 1\n"
    result = parse_annotations(source, "a.ts")
    database = compile_database([result])
    assert database.entries["a"].desc == "Alpha"
    assert database.ids == ["a"]
    assert database.stats.total_annotations == 1
    assert database.build_info.format == "metamode-v2"
    assert database.build_info.source_files == 1


def test_empty_corpus_yields_empty_database() -> None:
    database = compile_database([])
    assert database.entries == {}
    assert database.ids == []
    assert database.graph.edges == []
    assert database.stats.total_annotations == 0


def test_records_without_id_are_not_compiled() -> None:
    result = parse_annotations("// @mm:desc=Anonymous\nconst thing = 1\n", "anon.ts")
    assert compile_database([result]).entries == {}


def test_annotation_key_fallbacks() -> None:
    result = parse_annotations(
        "// @mm:desc=Named\nconst Named = 1\n\n\n// @mm:desc=Loose\n", "dir/file.ts"
    )
    named, loose = result.annotations
    assert annotation_key(named, result.file_path) == "file.ts:Named"
    assert annotation_key(loose, result.file_path) == "file.ts:5"


def test_duplicate_ids_resolve_last_wins() -> None:
    first = parse_annotations("// @mm:id=dup\n// @mm:desc=First\n", "one.ts")
    second = parse_annotations("// @mm:id=dup\n// @mm:desc=Second\n", "two.ts")
    database = compile_database([first, second])
    assert database.ids == ["dup"]
    assert database.entries["dup"].desc == "Second"
    assert database.entries["dup"].file_path == "two.ts"


def test_file_paths_are_relative_to_project_root() -> None:
    database = compile_database(_corpus(), project_root="/repo")
    assert database.entries["core"].file_path == "src/core.ts"
    assert database.entries["tool"].file_path == "scripts/tool.py"


def test_graph_edges_and_dependents() -> None:
    database = compile_database(_corpus())
    graph = database.graph
    assert graph.nodes["ui"].runtime_deps == ["core"]
    assert graph.nodes["ui"].build_deps == ["codegen"]
    assert graph.nodes["ui"].optional_deps == ["missing"]
    assert graph.nodes["tool"].runtime_deps == ["core", "ui"]
    assert graph.nodes["core"].dependents == ["ui", "tool"]
    assert graph.nodes["ui"].dependents == ["tool"]
    build_edges = [edge for edge in graph.edges if edge.dep_class is DepClass.BUILD]
    assert [(edge.source, edge.target) for edge in build_edges] == [("ui", "codegen")]


def test_graph_invariant_dependents_match_edges() -> None:
    graph = compile_database(_corpus()).graph
    for node_id, node in graph.nodes.items():
        for dependent in node.dependents:
            assert any(e.source == dependent and e.target == node_id for e in graph.edges)
    for edge in graph.edges:
        if edge.target in graph.nodes:
            assert edge.source in graph.nodes[edge.target].dependents


def test_statistics() -> None:
    stats = compile_database(_corpus()).stats
    assert stats.total_annotations == 3
    assert stats.by_status == {"stable": 1, "unknown": 2}
    assert stats.by_visibility == {"public": 2, "internal": 1}
    assert stats.by_phase == {1: 1}
    assert stats.by_tag == {"lib": 1, "core": 1, "ui": 1}
    assert [(item.id, item.dependent_count) for item in stats.top_dependencies] == [
        ("core", 2),
        ("ui", 1),
    ]
    assert stats.orphaned_dependencies == ["codegen", "missing"]


def test_recompile_is_identical_apart_from_timestamp() -> None:
    first = compile_database(_corpus(), project_root="/repo").to_dict()
    second = compile_database(_corpus(), project_root="/repo").to_dict()
    first["buildInfo"].pop("timestamp")
    second["buildInfo"].pop("timestamp")
    assert first == second


def test_database_dict_roundtrip() -> None:
    database = compile_database(_corpus(), timestamp="2026-01-01T00:00:00+00:00")
    payload = database.to_dict()
    assert Database.from_dict(payload).to_dict() == payload
    assert payload["graph"]["edges"][0] == {"from": "ui", "to": "core", "type": "runtime"}
    assert payload["stats"]["byPhase"] == {"1": 1}


def test_compile_project_scans_source_dirs(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "core.ts").write_text(CORE, encoding="utf-8")
    (tmp_path / "other").mkdir()
    (tmp_path / "other" / "ui.ts").write_text(UI, encoding="utf-8")

    database = compile_project(tmp_path, version="9.9.9")
    assert database.ids == ["core"]
    assert database.entries["core"].file_path == "src/core.ts"
    assert database.build_info.version == "9.9.9"
