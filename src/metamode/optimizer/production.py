"""Production reduction of a compiled database.

Internal entries are removed, development-only fields are stripped and the
graph and statistics are rederived from what survives. The output carries no
timestamp so identical input always serializes to identical bytes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from metamode.annotations.types import DEP_CLASSES, Visibility
from metamode.compiler.types import CompiledEntry, Database, DependencyGraph

logger = logging.getLogger(__name__)

PROD_FORMAT = "metamode-v2-prod"
UNSET_STATUS = "unknown"


@dataclass(slots=True)
class ProdEntry:
    id: str
    name: str | None = None
    desc: str | None = None
    tags: list[str] | None = None
    deps: dict[str, list[str]] | None = None
    ai: str | None = None
    version: str | None = None
    phase: int | None = None
    status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id}
        for key in ("name", "desc", "tags", "deps", "ai", "version", "phase", "status"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(slots=True)
class ProdStats:
    total_annotations: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_tag: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalAnnotations": self.total_annotations,
            "byStatus": dict(self.by_status),
            "byTag": dict(self.by_tag),
        }


@dataclass(slots=True)
class ProdDatabase:
    entries: dict[str, ProdEntry]
    ids: list[str]
    graph: DependencyGraph
    stats: ProdStats
    version: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": {entry_id: entry.to_dict() for entry_id, entry in self.entries.items()},
            "ids": list(self.ids),
            "graph": self.graph.to_dict(),
            "stats": self.stats.to_dict(),
            "buildInfo": {"version": self.version, "format": PROD_FORMAT},
        }


@dataclass(frozen=True, slots=True)
class BundleSizeReport:
    dev_size_bytes: int
    prod_size_bytes: int
    saved_bytes: int
    reduction_percent: float
    dev_entry_count: int
    prod_entry_count: int
    internal_entries_removed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "devSizeBytes": self.dev_size_bytes,
            "prodSizeBytes": self.prod_size_bytes,
            "savedBytes": self.saved_bytes,
            "reductionPercent": self.reduction_percent,
            "devEntryCount": self.dev_entry_count,
            "prodEntryCount": self.prod_entry_count,
            "internalEntriesRemoved": self.internal_entries_removed,
        }


def strip_entry(entry: CompiledEntry) -> ProdEntry | None:
    """Production form of *entry*, or None when it is internal."""
    if entry.visibility is Visibility.INTERNAL:
        return None
    deps = {key: list(values) for key, values in (entry.deps or {}).items() if values}
    return ProdEntry(
        id=entry.id,
        name=entry.name,
        desc=entry.desc,
        tags=list(entry.tags) if entry.tags else None,
        deps=deps or None,
        ai=(entry.ai.summary_text() or None) if entry.ai else None,
        version=entry.version,
        phase=entry.phase,
        status=entry.status.value if entry.status else None,
    )


def rebuild_graph(entries: dict[str, ProdEntry]) -> DependencyGraph:
    """Graph of surviving entries; edges to removed or unknown ids are dropped."""
    graph = DependencyGraph()
    for entry_id in entries:
        graph.add_node(entry_id)
    for entry_id, entry in entries.items():
        if not entry.deps:
            continue
        for dep_class in DEP_CLASSES:
            for target in entry.deps.get(dep_class.value, []):
                if target in entries:
                    graph.add_edge(entry_id, target, dep_class)
    return graph


def compute_prod_stats(entries: dict[str, ProdEntry]) -> ProdStats:
    stats = ProdStats(total_annotations=len(entries))
    for entry in entries.values():
        status = entry.status or UNSET_STATUS
        stats.by_status[status] = stats.by_status.get(status, 0) + 1
        for tag in entry.tags or []:
            stats.by_tag[tag] = stats.by_tag.get(tag, 0) + 1
    return stats


def optimize_for_production(database: Database) -> ProdDatabase:
    entries: dict[str, ProdEntry] = {}
    for entry_id, entry in database.entries.items():
        stripped = strip_entry(entry)
        if stripped is not None:
            entries[entry_id] = stripped

    graph = rebuild_graph(entries)
    logger.info(
        "production database: kept %d of %d entries, %d edge(s)",
        len(entries),
        len(database.entries),
        len(graph.edges),
    )
    return ProdDatabase(
        entries=entries,
        ids=list(entries),
        graph=graph,
        stats=compute_prod_stats(entries),
        version=database.build_info.version,
    )


def serialize_compact(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def analyze_bundle_size(database: Database, prod: ProdDatabase) -> BundleSizeReport:
    """Compare compact UTF-8 serializations of the development and production documents."""
    dev_size = len(serialize_compact(database.to_dict()).encode("utf-8"))
    prod_size = len(serialize_compact(prod.to_dict()).encode("utf-8"))
    saved = dev_size - prod_size
    dev_count = len(database.entries)
    prod_count = len(prod.entries)
    return BundleSizeReport(
        dev_size_bytes=dev_size,
        prod_size_bytes=prod_size,
        saved_bytes=saved,
        reduction_percent=(saved / dev_size) * 100 if dev_size > 0 else 0.0,
        dev_entry_count=dev_count,
        prod_entry_count=prod_count,
        internal_entries_removed=dev_count - prod_count,
    )


def format_bundle_report(report: BundleSizeReport) -> str:
    return "\n".join(
        [
            "Bundle Size Analysis:",
            f"   Dev database:  {report.dev_size_bytes:,} bytes ({report.dev_entry_count} entries)",
            f"   Prod database: {report.prod_size_bytes:,} bytes "
            f"({report.prod_entry_count} entries)",
            f"   Saved:         {report.saved_bytes:,} bytes "
            f"({report.reduction_percent:.1f}% reduction)",
            f"   Internal removed: {report.internal_entries_removed} entries",
        ]
    )
