"""Types for the compiled annotation database."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from metamode.annotations.types import AiMeta, DepClass, Origin, Status, Visibility

DB_FORMAT = "metamode-v2"


@dataclass(slots=True)
class CompiledEntry:
    id: str
    file_path: str
    line: int
    source: Origin
    name: str | None = None
    desc: str | None = None
    tags: list[str] | None = None
    deps: dict[str, list[str]] | None = None
    ai: AiMeta | None = None
    visibility: Visibility | None = None
    version: str | None = None
    phase: int | None = None
    status: Status | None = None
    entity_name: str | None = None

    @property
    def effective_visibility(self) -> Visibility:
        return self.visibility or Visibility.PUBLIC

    def dep_targets(self, dep_class: DepClass) -> list[str]:
        if not self.deps:
            return []
        return list(self.deps.get(dep_class.value, []))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id}
        if self.name is not None:
            payload["name"] = self.name
        if self.desc is not None:
            payload["desc"] = self.desc
        if self.tags is not None:
            payload["tags"] = list(self.tags)
        if self.deps:
            payload["deps"] = {key: list(values) for key, values in self.deps.items()}
        if self.ai is not None:
            payload["ai"] = self.ai.to_value()
        if self.visibility is not None:
            payload["visibility"] = self.visibility.value
        if self.version is not None:
            payload["version"] = self.version
        if self.phase is not None:
            payload["phase"] = self.phase
        if self.status is not None:
            payload["status"] = self.status.value
        payload["filePath"] = self.file_path
        payload["line"] = self.line
        payload["source"] = self.source.value
        if self.entity_name is not None:
            payload["entityName"] = self.entity_name
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> CompiledEntry:
        deps = payload.get("deps")
        return cls(
            id=str(payload["id"]),
            file_path=str(payload["filePath"]),
            line=int(payload["line"]),
            source=Origin(payload["source"]),
            name=payload.get("name"),
            desc=payload.get("desc"),
            tags=list(payload["tags"]) if payload.get("tags") is not None else None,
            deps={key: list(values) for key, values in deps.items()} if deps else None,
            ai=AiMeta.from_value(payload.get("ai")),
            visibility=Visibility(payload["visibility"]) if payload.get("visibility") else None,
            version=payload.get("version"),
            phase=int(payload["phase"]) if payload.get("phase") is not None else None,
            status=Status(payload["status"]) if payload.get("status") else None,
            entity_name=payload.get("entityName"),
        )


@dataclass(slots=True)
class GraphNode:
    id: str
    runtime_deps: list[str] = field(default_factory=list)
    build_deps: list[str] = field(default_factory=list)
    optional_deps: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)

    def deps_for(self, dep_class: DepClass) -> list[str]:
        if dep_class is DepClass.RUNTIME:
            return self.runtime_deps
        if dep_class is DepClass.BUILD:
            return self.build_deps
        return self.optional_deps

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "runtimeDeps": list(self.runtime_deps),
            "buildDeps": list(self.build_deps),
            "optionalDeps": list(self.optional_deps),
            "dependents": list(self.dependents),
        }


@dataclass(frozen=True, slots=True)
class GraphEdge:
    source: str
    target: str
    dep_class: DepClass

    def to_dict(self) -> dict[str, str]:
        return {"from": self.source, "to": self.target, "type": self.dep_class.value}


@dataclass(slots=True)
class DependencyGraph:
    nodes: dict[str, GraphNode] = field(default_factory=dict)
    edges: list[GraphEdge] = field(default_factory=list)

    def add_node(self, node_id: str) -> GraphNode:
        node = GraphNode(id=node_id)
        self.nodes[node_id] = node
        return node

    def add_edge(self, source: str, target: str, dep_class: DepClass) -> None:
        """Record an edge; the target's dependents only grow if the target is a node."""
        self.nodes[source].deps_for(dep_class).append(target)
        self.edges.append(GraphEdge(source=source, target=target, dep_class=dep_class))
        if target in self.nodes:
            self.nodes[target].dependents.append(source)

    def adjacency(
        self, classes: tuple[DepClass, ...] = (DepClass.RUNTIME,)
    ) -> dict[str, list[str]]:
        return {
            node_id: [target for dep_class in classes for target in node.deps_for(dep_class)]
            for node_id, node in self.nodes.items()
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": {node_id: node.to_dict() for node_id, node in self.nodes.items()},
            "edges": [edge.to_dict() for edge in self.edges],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> DependencyGraph:
        graph = cls()
        for node_id, node in payload.get("nodes", {}).items():
            graph.nodes[node_id] = GraphNode(
                id=node_id,
                runtime_deps=list(node.get("runtimeDeps", [])),
                build_deps=list(node.get("buildDeps", [])),
                optional_deps=list(node.get("optionalDeps", [])),
                dependents=list(node.get("dependents", [])),
            )
        graph.edges = [
            GraphEdge(source=edge["from"], target=edge["to"], dep_class=DepClass(edge["type"]))
            for edge in payload.get("edges", [])
        ]
        return graph


@dataclass(frozen=True, slots=True)
class DependencyCount:
    id: str
    dependent_count: int


@dataclass(slots=True)
class DatabaseStats:
    total_annotations: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_visibility: dict[str, int] = field(default_factory=dict)
    by_phase: dict[int, int] = field(default_factory=dict)
    by_tag: dict[str, int] = field(default_factory=dict)
    top_dependencies: list[DependencyCount] = field(default_factory=list)
    orphaned_dependencies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalAnnotations": self.total_annotations,
            "byStatus": dict(self.by_status),
            "byVisibility": dict(self.by_visibility),
            "byPhase": {str(phase): count for phase, count in self.by_phase.items()},
            "byTag": dict(self.by_tag),
            "topDependencies": [
                {"id": item.id, "dependentCount": item.dependent_count}
                for item in self.top_dependencies
            ],
            "orphanedDependencies": list(self.orphaned_dependencies),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> DatabaseStats:
        return cls(
            total_annotations=int(payload.get("totalAnnotations", 0)),
            by_status=dict(payload.get("byStatus", {})),
            by_visibility=dict(payload.get("byVisibility", {})),
            by_phase={int(phase): count for phase, count in payload.get("byPhase", {}).items()},
            by_tag=dict(payload.get("byTag", {})),
            top_dependencies=[
                DependencyCount(id=item["id"], dependent_count=int(item["dependentCount"]))
                for item in payload.get("topDependencies", [])
            ],
            orphaned_dependencies=list(payload.get("orphanedDependencies", [])),
        )


@dataclass(slots=True)
class BuildInfo:
    timestamp: str
    version: str
    source_files: int
    format: str = DB_FORMAT

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "version": self.version,
            "sourceFiles": self.source_files,
            "format": self.format,
        }


@dataclass(slots=True)
class Database:
    entries: dict[str, CompiledEntry]
    ids: list[str]
    graph: DependencyGraph
    stats: DatabaseStats
    build_info: BuildInfo

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": {entry_id: entry.to_dict() for entry_id, entry in self.entries.items()},
            "ids": list(self.ids),
            "graph": self.graph.to_dict(),
            "stats": self.stats.to_dict(),
            "buildInfo": self.build_info.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Database:
        build_info = payload["buildInfo"]
        return cls(
            entries={
                entry_id: CompiledEntry.from_dict(entry)
                for entry_id, entry in payload["entries"].items()
            },
            ids=list(payload["ids"]),
            graph=DependencyGraph.from_dict(payload["graph"]),
            stats=DatabaseStats.from_dict(payload["stats"]),
            build_info=BuildInfo(
                timestamp=str(build_info.get("timestamp", "")),
                version=str(build_info["version"]),
                source_files=int(build_info.get("sourceFiles", 0)),
                format=str(build_info.get("format", DB_FORMAT)),
            ),
        )

