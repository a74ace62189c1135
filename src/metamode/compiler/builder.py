"""Compile extracted annotations into a dependency-aware database."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path, PurePath

from metamode.annotations.scanner import DEFAULT_EXTENSIONS, scan_roots
from metamode.annotations.types import (
    DEP_CLASSES,
    Dependencies,
    FileParseResult,
    ParsedAnnotation,
    Visibility,
)
from metamode.compiler.types import (
    BuildInfo,
    CompiledEntry,
    Database,
    DatabaseStats,
    DependencyCount,
    DependencyGraph,
)

logger = logging.getLogger(__name__)

DB_VERSION = "2.0.0"
UNSET_STATUS = "unknown"
TOP_DEPENDENCY_LIMIT = 10


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def annotation_key(parsed: ParsedAnnotation, file_path: str) -> str:
    """Logical identity of a record: its id, else file basename plus entity or line."""
    if parsed.annotation.id:
        return parsed.annotation.id
    basename = PurePath(file_path).name
    if parsed.entity_name:
        return f"{basename}:{parsed.entity_name}"
    return f"{basename}:{parsed.line}"


def build_annotation_index(
    results: Iterable[FileParseResult],
) -> dict[str, tuple[ParsedAnnotation, str]]:
    """Index records by logical key; later records replace earlier ones."""
    index: dict[str, tuple[ParsedAnnotation, str]] = {}
    for result in results:
        for parsed in result.annotations:
            index[annotation_key(parsed, result.file_path)] = (parsed, result.file_path)
    return index


def normalize_deps(deps: Dependencies | None) -> dict[str, list[str]] | None:
    if deps is None:
        return None
    buckets = deps.as_buckets()
    return buckets or None


def _relative_path(file_path: str, project_root: Path | str | None) -> str:
    if project_root is None:
        return PurePath(file_path).as_posix()
    try:
        return Path(file_path).relative_to(project_root).as_posix()
    except ValueError:
        return Path(os.path.relpath(file_path, project_root)).as_posix()


def to_entry(
    parsed: ParsedAnnotation, file_path: str, project_root: Path | str | None = None
) -> CompiledEntry:
    record = parsed.annotation
    if not record.id:
        raise ValueError("only records with an id can be compiled")
    return CompiledEntry(
        id=record.id,
        file_path=_relative_path(file_path, project_root),
        line=parsed.line,
        source=parsed.source,
        name=record.name,
        desc=record.desc,
        tags=list(record.tags) if record.tags is not None else None,
        deps=normalize_deps(record.deps),
        ai=record.ai,
        visibility=record.visibility,
        version=record.version,
        phase=record.phase,
        status=record.status,
        entity_name=parsed.entity_name,
    )


def build_graph(entries: dict[str, CompiledEntry]) -> DependencyGraph:
    graph = DependencyGraph()
    for entry_id in entries:
        graph.add_node(entry_id)
    for entry_id, entry in entries.items():
        for dep_class in DEP_CLASSES:
            for target in entry.dep_targets(dep_class):
                graph.add_edge(entry_id, target, dep_class)
    return graph


def compute_stats(entries: dict[str, CompiledEntry], graph: DependencyGraph) -> DatabaseStats:
    stats = DatabaseStats(total_annotations=len(entries))
    for entry in entries.values():
        status = entry.status.value if entry.status else UNSET_STATUS
        stats.by_status[status] = stats.by_status.get(status, 0) + 1
        visibility = (entry.visibility or Visibility.PUBLIC).value
        stats.by_visibility[visibility] = stats.by_visibility.get(visibility, 0) + 1
        if entry.phase is not None:
            stats.by_phase[entry.phase] = stats.by_phase.get(entry.phase, 0) + 1
        for tag in entry.tags or []:
            stats.by_tag[tag] = stats.by_tag.get(tag, 0) + 1

    counts = [
        DependencyCount(id=node_id, dependent_count=len(node.dependents))
        for node_id, node in graph.nodes.items()
        if node.dependents
    ]
    # sorted() is stable, so ties keep node order.
    counts.sort(key=lambda item: item.dependent_count, reverse=True)
    stats.top_dependencies = counts[:TOP_DEPENDENCY_LIMIT]

    for edge in graph.edges:
        if edge.target not in entries and edge.target not in stats.orphaned_dependencies:
            stats.orphaned_dependencies.append(edge.target)
    return stats


def compile_database(
    results: list[FileParseResult],
    *,
    project_root: Path | str | None = None,
    version: str = DB_VERSION,
    timestamp: str | None = None,
) -> Database:
    """Compile per-file extraction results into a Database.

    Records without an id are dropped here. Duplicate ids resolve last-wins;
    reporting them is the validation engine's job. Never raises for data
    problems: an empty corpus yields an empty, valid Database.
    """
    entries: dict[str, CompiledEntry] = {}
    for key, (parsed, file_path) in build_annotation_index(results).items():
        if parsed.annotation.id:
            entries[key] = to_entry(parsed, file_path, project_root)

    graph = build_graph(entries)
    stats = compute_stats(entries, graph)
    build_info = BuildInfo(
        timestamp=timestamp or _now_iso(),
        version=version,
        source_files=len(results),
    )
    logger.info(
        "compiled %d annotation(s) from %d file(s), %d edge(s)",
        len(entries),
        len(results),
        len(graph.edges),
    )
    return Database(
        entries=entries,
        ids=list(entries),
        graph=graph,
        stats=stats,
        build_info=build_info,
    )


def compile_project(
    project_root: Path | str,
    *,
    source_dirs: Iterable[str] = ("src", "scripts"),
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    exclude: Iterable[str] = (),
    max_depth: int | None = None,
    version: str = DB_VERSION,
) -> Database:
    """Scan *project_root* and compile everything found."""
    results = scan_roots(
        project_root,
        source_dirs,
        extensions=extensions,
        exclude=exclude,
        max_depth=max_depth,
    )
    return compile_database(results, project_root=project_root, version=version)
