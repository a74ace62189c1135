"""Read-only query surface over a compiled Database."""

from __future__ import annotations

import json
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from metamode.annotations.types import DEP_CLASSES, DepClass, Status, Visibility
from metamode.compiler.types import (
    BuildInfo,
    CompiledEntry,
    Database,
    DatabaseStats,
    DependencyGraph,
)
from metamode.graph.cycles import cycle_containing, find_cycles

UNSET_STATUS = "unknown"
COMPACT_FIELDS = ("id", "desc", "tags", "ai")
EDGE_COLORS = {DepClass.RUNTIME: "black", DepClass.BUILD: "blue", DepClass.OPTIONAL: "gray"}


@dataclass(slots=True)
class IntegrityReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def _as_list(value: Any) -> list[Any] | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _classes(dep_class: DepClass | str | None) -> tuple[DepClass, ...]:
    if dep_class is None or dep_class == "all":
        return DEP_CLASSES
    return (DepClass(dep_class),)


def _dot_quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class MetamodeApi:
    """Lookups, traversal, integrity checks and export over one Database.

    The API never mutates the database it wraps; construct a new instance
    after recompiling.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    @property
    def database(self) -> Database:
        return self._db

    @property
    def stats(self) -> DatabaseStats:
        return self._db.stats

    @property
    def build_info(self) -> BuildInfo:
        return self._db.build_info

    def get_graph(self) -> DependencyGraph:
        return self._db.graph

    def find_by_id(self, entry_id: str) -> CompiledEntry | None:
        return self._db.entries.get(entry_id)

    def find_all(
        self,
        *,
        status: Status | str | Iterable[Status | str] | None = None,
        visibility: Visibility | str | None = None,
        phase: int | Iterable[int] | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[CompiledEntry]:
        """Entries matching every given filter; tags match when any one is present.

        An entry without a status is matched by "unknown", and one without a
        visibility counts as public.
        """
        statuses = _as_list(status)
        wanted_status = {str(getattr(item, "value", item)) for item in statuses or []}
        wanted_visibility = Visibility(visibility) if visibility is not None else None
        phases = _as_list(phase)
        wanted_tags = list(tags) if tags is not None else []

        matches: list[CompiledEntry] = []
        for entry in self._db.entries.values():
            if statuses is not None:
                entry_status = entry.status.value if entry.status else UNSET_STATUS
                if entry_status not in wanted_status:
                    continue
            if wanted_visibility and entry.effective_visibility is not wanted_visibility:
                continue
            if phases is not None and (entry.phase is None or entry.phase not in phases):
                continue
            if wanted_tags and not any(tag in (entry.tags or []) for tag in wanted_tags):
                continue
            matches.append(entry)
        return matches

    def find_by_tag(self, tag: str, **filters: Any) -> list[CompiledEntry]:
        return self.find_all(tags=[tag], **filters)

    def _direct_dependencies(self, entry_id: str, classes: tuple[DepClass, ...]) -> list[str]:
        entry = self._db.entries.get(entry_id)
        if entry is None:
            return []
        return [target for dep_class in classes for target in entry.dep_targets(dep_class)]

    def get_dependencies(
        self,
        entry_id: str,
        dep_class: DepClass | str | None = None,
        *,
        recursive: bool = False,
    ) -> list[str]:
        """Dependency ids of *entry_id*, optionally the full transitive closure.

        The closure is breadth-first, visits each id once and never includes
        *entry_id* itself, so cycles terminate.
        """
        classes = _classes(dep_class)
        if not recursive:
            return self._direct_dependencies(entry_id, classes)

        visited = {entry_id}
        closure: list[str] = []
        queue = deque(self._direct_dependencies(entry_id, classes))
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            closure.append(current)
            queue.extend(
                target
                for target in self._direct_dependencies(current, classes)
                if target not in visited
            )
        return closure

    def get_dependents(self, entry_id: str) -> list[str]:
        node = self._db.graph.nodes.get(entry_id)
        return list(node.dependents) if node else []

    def find_all_cycles(self) -> list[list[str]]:
        return find_cycles(self._db.graph.adjacency())

    def detect_cycle(self, entry_id: str) -> list[str] | None:
        return cycle_containing(self._db.graph.adjacency(), entry_id)

    def validate(self) -> IntegrityReport:
        report = IntegrityReport()
        for orphan in self._db.stats.orphaned_dependencies:
            report.warnings.append(
                f'Dependency "{orphan}" is referenced but has no @mm:id annotation.'
            )
        for cycle in self.find_all_cycles():
            report.errors.append(f"Circular runtime dependency: {' → '.join(cycle)}")
        for entry in self._db.entries.values():
            if not entry.desc:
                report.warnings.append(
                    f'Entry "{entry.id}" is missing @mm:desc ({entry.file_path}:{entry.line})'
                )
        return report

    def export_for_llm(
        self,
        *,
        scope: Iterable[str] | None = None,
        fields: Iterable[str] | None = None,
        limit: int | None = None,
        mode: Literal["compact", "full"] = "compact",
    ) -> list[dict[str, Any]]:
        """Token-lean export of entries, filtered by tag scope and truncated to *limit*.

        Compact mode keeps id, desc, tags and a one-line ai summary plus any
        extra *fields*; full mode keeps *fields* only, or whole entries.
        """
        entries = list(self._db.entries.values())
        scope_tags = list(scope or [])
        if scope_tags:
            entries = [
                entry for entry in entries if any(tag in (entry.tags or []) for tag in scope_tags)
            ]
        if limit is not None and limit > 0:
            entries = entries[:limit]
        wanted = list(fields or [])

        exported: list[dict[str, Any]] = []
        for entry in entries:
            payload = entry.to_dict()
            if mode == "compact":
                record: dict[str, Any] = {"id": entry.id}
                if entry.desc:
                    record["desc"] = entry.desc
                if entry.tags:
                    record["tags"] = list(entry.tags)
                summary = entry.ai.summary_text() if entry.ai else None
                if summary:
                    record["ai"] = summary
                for name in wanted:
                    if name not in COMPACT_FIELDS and name in payload:
                        record[name] = payload[name]
                exported.append(record)
            elif wanted:
                exported.append({name: payload[name] for name in wanted if name in payload})
            else:
                exported.append(payload)
        return exported

    def export_graph(
        self,
        fmt: Literal["json", "dot"] = "json",
        *,
        edge_class: DepClass | str | None = None,
    ) -> str:
        """Serialize the dependency graph as JSON or as a Graphviz DOT digraph."""
        graph = self._db.graph
        classes = _classes(edge_class)
        edges = [edge for edge in graph.edges if edge.dep_class in classes]

        if fmt == "json":
            return json.dumps(
                {"nodes": list(graph.nodes), "edges": [edge.to_dict() for edge in edges]},
                indent=2,
            )
        if fmt != "dot":
            raise ValueError(f"unsupported graph format: {fmt}")

        lines = ["digraph MetaModeGraph {", "  rankdir=LR;", "  node [shape=box];"]
        for node_id in graph.nodes:
            entry = self._db.entries.get(node_id)
            label = (entry.name if entry and entry.name else None) or node_id
            shape = (
                "ellipse"
                if entry is not None and entry.visibility is Visibility.INTERNAL
                else "box"
            )
            lines.append(
                f'  "{_dot_quote(node_id)}" [label="{_dot_quote(label)}" shape={shape}];'
            )
        for edge in edges:
            lines.append(
                f'  "{_dot_quote(edge.source)}" -> "{_dot_quote(edge.target)}" '
                f'[color={EDGE_COLORS[edge.dep_class]} label="{edge.dep_class.value}"];'
            )
        lines.append("}")
        return "\n".join(lines)
