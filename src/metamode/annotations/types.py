"""Types for extracted annotation records and their provenance."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class Visibility(str, Enum):
    PUBLIC = "public"
    INTERNAL = "internal"


class Status(str, Enum):
    STABLE = "stable"
    BETA = "beta"
    EXPERIMENTAL = "experimental"
    DEPRECATED = "deprecated"
    EXP = "exp"
    DEP = "dep"


class DepClass(str, Enum):
    RUNTIME = "runtime"
    BUILD = "build"
    OPTIONAL = "optional"


class DepsShape(str, Enum):
    FLAT = "flat"
    CLASSIFIED = "classified"


class AiShape(str, Enum):
    TEXT = "text"
    STRUCTURED = "structured"


class Origin(str, Enum):
    STRUCTURED_COMMENT = "jsdoc"
    EMBEDDED_OBJECT = "runtime"


DEP_CLASSES = (DepClass.RUNTIME, DepClass.BUILD, DepClass.OPTIONAL)


@dataclass(slots=True)
class Dependencies:
    """Dependency declaration.

    A FLAT declaration is an unprefixed list; every target is a runtime
    dependency. A CLASSIFIED declaration used at least one ``type:`` prefix.
    """

    shape: DepsShape
    runtime: list[str] = field(default_factory=list)
    build: list[str] = field(default_factory=list)
    optional: list[str] = field(default_factory=list)

    def bucket(self, dep_class: DepClass) -> list[str]:
        if dep_class is DepClass.RUNTIME:
            return self.runtime
        if dep_class is DepClass.BUILD:
            return self.build
        return self.optional

    def targets(self, classes: tuple[DepClass, ...] = DEP_CLASSES) -> list[str]:
        collected: list[str] = []
        for dep_class in classes:
            collected.extend(self.bucket(dep_class))
        return collected

    def is_empty(self) -> bool:
        return not (self.runtime or self.build or self.optional)

    def as_buckets(self) -> dict[str, list[str]]:
        """Three-bucket form with empty buckets omitted."""
        buckets: dict[str, list[str]] = {}
        for dep_class in DEP_CLASSES:
            values = self.bucket(dep_class)
            if values:
                buckets[dep_class.value] = list(values)
        return buckets


@dataclass(slots=True)
class AiMeta:
    shape: AiShape
    text: str | None = None
    summary: str | None = None
    usage: str | None = None
    examples: list[str] | None = None

    @classmethod
    def from_text(cls, text: str) -> AiMeta:
        return cls(shape=AiShape.TEXT, text=text)

    @classmethod
    def structured(cls, **values: Any) -> AiMeta:
        return cls(shape=AiShape.STRUCTURED, **values)

    @property
    def is_structured(self) -> bool:
        return self.shape is AiShape.STRUCTURED

    def summary_text(self) -> str | None:
        """Single-string form: the text itself, or the structured summary."""
        if self.shape is AiShape.TEXT:
            return self.text
        return self.summary

    def to_value(self) -> str | dict[str, Any]:
        if self.shape is AiShape.TEXT:
            return self.text or ""
        value: dict[str, Any] = {}
        if self.summary is not None:
            value["summary"] = self.summary
        if self.usage is not None:
            value["usage"] = self.usage
        if self.examples is not None:
            value["examples"] = list(self.examples)
        return value

    @classmethod
    def from_value(cls, value: Any) -> AiMeta | None:
        if value is None:
            return None
        if isinstance(value, str):
            return cls.from_text(value)
        if isinstance(value, dict):
            examples = value.get("examples")
            return cls.structured(
                summary=value.get("summary"),
                usage=value.get("usage"),
                examples=list(examples) if isinstance(examples, list) else None,
            )
        return None


@dataclass(slots=True)
class AnnotationRecord:
    id: str | None = None
    name: str | None = None
    desc: str | None = None
    tags: list[str] | None = None
    deps: Dependencies | None = None
    ai: AiMeta | None = None
    visibility: Visibility | None = None
    version: str | None = None
    phase: int | None = None
    status: Status | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))

    def merged_with(self, override: AnnotationRecord) -> AnnotationRecord:
        """Field-by-field merge where every field set on ``override`` wins."""
        merged = AnnotationRecord()
        for item in fields(self):
            theirs = getattr(override, item.name)
            setattr(merged, item.name, theirs if theirs is not None else getattr(self, item.name))
        return merged

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.id is not None:
            payload["id"] = self.id
        if self.name is not None:
            payload["name"] = self.name
        if self.desc is not None:
            payload["desc"] = self.desc
        if self.tags is not None:
            payload["tags"] = list(self.tags)
        if self.deps is not None:
            if self.deps.shape is DepsShape.FLAT:
                payload["deps"] = list(self.deps.runtime)
            else:
                payload["deps"] = self.deps.as_buckets()
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
        return payload


@dataclass(slots=True)
class ParsedAnnotation:
    annotation: AnnotationRecord
    source: Origin
    line: int
    raw: str
    entity_name: str | None = None


@dataclass(slots=True)
class FileParseResult:
    file_path: str
    annotations: list[ParsedAnnotation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_content(self) -> bool:
        return bool(self.annotations or self.warnings)
