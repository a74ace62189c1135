"""Semantic rules over the raw per-file extraction corpus.

Every rule is a plain function returning a list of ValidationIssue. Rules never
raise for bad annotations; the engine decides how issues are reported.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Any

from metamode.annotations.types import (
    DepClass,
    FileParseResult,
    ParsedAnnotation,
    Visibility,
)
from metamode.graph.cycles import find_cycles
from metamode.validation.schema import schema_errors

UNIQUE_ID = "unique-id-per-scope"
DEPS_MUST_EXIST = "deps-must-exist"
NO_CIRCULAR_RUNTIME_DEPS = "no-circular-runtime-deps"
REQUIRED_FIELDS_PRESENT = "required-fields-present"
VISIBILITY_CONSISTENCY = "visibility-consistency"
SCHEMA_VALIDATES = "schema-validates"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(slots=True)
class ValidationIssue:
    rule: str
    severity: Severity
    message: str
    annotation_id: str | None = None
    file_path: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "rule": self.rule,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.annotation_id is not None:
            payload["annotationId"] = self.annotation_id
        if self.file_path is not None:
            payload["filePath"] = self.file_path
        if self.line is not None:
            payload["line"] = self.line
        return payload


@dataclass(slots=True)
class IndexedAnnotation:
    parsed: ParsedAnnotation
    file_path: str
    id: str

    @property
    def location(self) -> str:
        return f"{PurePath(self.file_path).name}:{self.parsed.line}"


def flatten_annotations(results: Iterable[FileParseResult]) -> list[IndexedAnnotation]:
    """Every id-bearing record, in corpus order, duplicates included."""
    return [
        IndexedAnnotation(parsed=parsed, file_path=result.file_path, id=parsed.annotation.id)
        for result in results
        for parsed in result.annotations
        if parsed.annotation.id
    ]


def final_segment(target: str) -> str:
    return target.rsplit("/", 1)[-1]


def resolve_target(
    target: str, known: Collection[str], path_segment_match: bool = True
) -> str | None:
    """Map a dependency target to a known id: exact match, then its last path segment."""
    if target in known:
        return target
    if path_segment_match and "/" in target:
        segment = final_segment(target)
        if segment in known:
            return segment
    return None


def _entity_ref(parsed: ParsedAnnotation) -> str:
    if parsed.annotation.id:
        return f'"{parsed.annotation.id}"'
    if parsed.entity_name:
        return f'"{parsed.entity_name}"'
    return f"at line {parsed.line}"


def check_unique_ids(annotations: list[IndexedAnnotation]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    seen: dict[str, IndexedAnnotation] = {}
    for ann in annotations:
        first = seen.get(ann.id)
        if first is None:
            seen[ann.id] = ann
            continue
        issues.append(
            ValidationIssue(
                rule=UNIQUE_ID,
                severity=Severity.ERROR,
                message=(
                    f'Duplicate @mm:id "{ann.id}" found. First declared in {first.location}, '
                    f"redeclared in {ann.location}."
                ),
                annotation_id=ann.id,
                file_path=ann.file_path,
                line=ann.parsed.line,
            )
        )
    return issues


def check_deps_exist(
    annotations: list[IndexedAnnotation], *, path_segment_match: bool = True
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    known = {ann.id for ann in annotations}
    for ann in annotations:
        deps = ann.parsed.annotation.deps
        if deps is None:
            continue
        for target in deps.targets():
            if resolve_target(target, known, path_segment_match) is not None:
                continue
            # Path-shaped targets often name modules that simply carry no annotation.
            severity = Severity.WARNING if "/" in target else Severity.ERROR
            issues.append(
                ValidationIssue(
                    rule=DEPS_MUST_EXIST,
                    severity=severity,
                    message=(
                        f'Dependency "{target}" declared in {ann.id} does not match any known '
                        "@mm:id."
                    ),
                    annotation_id=ann.id,
                    file_path=ann.file_path,
                    line=ann.parsed.line,
                )
            )
    return issues


def runtime_adjacency(annotations: list[IndexedAnnotation]) -> dict[str, list[str]]:
    adjacency: dict[str, list[str]] = {}
    for ann in annotations:
        targets = adjacency.setdefault(ann.id, [])
        deps = ann.parsed.annotation.deps
        if deps is None:
            continue
        for target in deps.bucket(DepClass.RUNTIME):
            if target not in targets:
                targets.append(target)
    return adjacency


def check_no_circular_deps(annotations: list[IndexedAnnotation]) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            rule=NO_CIRCULAR_RUNTIME_DEPS,
            severity=Severity.ERROR,
            message=f"Circular runtime dependency detected: {' → '.join(cycle)}",
        )
        for cycle in find_cycles(runtime_adjacency(annotations))
    ]


def check_required_fields(
    results: Iterable[FileParseResult], required_fields: Iterable[str]
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    fields = tuple(required_fields)
    for result in results:
        basename = PurePath(result.file_path).name
        for parsed in result.annotations:
            for field_name in fields:
                if getattr(parsed.annotation, field_name, None) is not None:
                    continue
                issues.append(
                    ValidationIssue(
                        rule=REQUIRED_FIELDS_PRESENT,
                        severity=Severity.ERROR,
                        message=(
                            f'Required field "@mm:{field_name}" is missing in annotation '
                            f"{_entity_ref(parsed)} in {basename}."
                        ),
                        annotation_id=parsed.annotation.id,
                        file_path=result.file_path,
                        line=parsed.line,
                    )
                )
    return issues


def check_visibility_consistency(
    annotations: list[IndexedAnnotation], *, path_segment_match: bool = True
) -> list[ValidationIssue]:
    """Public records should not runtime- or build-depend on internal ones."""
    issues: list[ValidationIssue] = []
    declared = {
        ann.id: ann.parsed.annotation.visibility
        for ann in annotations
        if ann.parsed.annotation.visibility is not None
    }
    for ann in annotations:
        record = ann.parsed.annotation
        if (record.visibility or Visibility.PUBLIC) is not Visibility.PUBLIC:
            continue
        if record.deps is None:
            continue
        for target in record.deps.targets((DepClass.RUNTIME, DepClass.BUILD)):
            resolved = resolve_target(target, declared, path_segment_match)
            if resolved is None or declared[resolved] is not Visibility.INTERNAL:
                continue
            issues.append(
                ValidationIssue(
                    rule=VISIBILITY_CONSISTENCY,
                    severity=Severity.WARNING,
                    message=(
                        f'Public entity "{ann.id}" depends on internal entity "{target}". '
                        f'Consider making "{target}" public or making "{ann.id}" internal.'
                    ),
                    annotation_id=ann.id,
                    file_path=ann.file_path,
                    line=ann.parsed.line,
                )
            )
    return issues


def check_schema(results: Iterable[FileParseResult]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for result in results:
        basename = PurePath(result.file_path).name
        for parsed in result.annotations:
            for message in schema_errors(parsed.annotation):
                issues.append(
                    ValidationIssue(
                        rule=SCHEMA_VALIDATES,
                        severity=Severity.ERROR,
                        message=(
                            f"Annotation {_entity_ref(parsed)} in {basename} failed schema "
                            f"validation: {message}"
                        ),
                        annotation_id=parsed.annotation.id,
                        file_path=result.file_path,
                        line=parsed.line,
                    )
                )
    return issues
