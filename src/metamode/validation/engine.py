"""Run semantic rules over a corpus and report the outcome."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from pathlib import PurePath
from typing import Any

from metamode.annotations.types import FileParseResult
from metamode.config import KNOWN_RULES
from metamode.validation import rules as r
from metamode.validation.rules import Severity, ValidationIssue

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_FIELDS = ("id", "desc")


@dataclass(slots=True)
class ValidatorOptions:
    rules: tuple[str, ...] = KNOWN_RULES
    warn_only: tuple[str, ...] = ()
    required_fields: tuple[str, ...] = DEFAULT_REQUIRED_FIELDS
    include_warnings: bool = True
    path_segment_match: bool = True


@dataclass(slots=True)
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
            "passed": self.passed,
        }


def validate_annotations(
    results: Iterable[FileParseResult], options: ValidatorOptions | None = None
) -> ValidationResult:
    """Run the enabled rules, then downgrade issues from warn-only rules."""
    opts = options or ValidatorOptions()
    corpus = list(results)
    enabled = set(opts.rules)
    annotations = r.flatten_annotations(corpus)

    issues: list[ValidationIssue] = []
    if r.UNIQUE_ID in enabled:
        issues.extend(r.check_unique_ids(annotations))
    if r.DEPS_MUST_EXIST in enabled:
        issues.extend(
            r.check_deps_exist(annotations, path_segment_match=opts.path_segment_match)
        )
    if r.NO_CIRCULAR_RUNTIME_DEPS in enabled:
        issues.extend(r.check_no_circular_deps(annotations))
    if r.REQUIRED_FIELDS_PRESENT in enabled:
        issues.extend(r.check_required_fields(corpus, opts.required_fields))
    if r.VISIBILITY_CONSISTENCY in enabled:
        issues.extend(
            r.check_visibility_consistency(
                annotations, path_segment_match=opts.path_segment_match
            )
        )
    if r.SCHEMA_VALIDATES in enabled:
        issues.extend(r.check_schema(corpus))

    warn_only = set(opts.warn_only)
    if warn_only:
        issues = [
            replace(issue, severity=Severity.WARNING) if issue.rule in warn_only else issue
            for issue in issues
        ]

    result = ValidationResult(
        errors=[issue for issue in issues if issue.severity is Severity.ERROR],
        warnings=(
            [issue for issue in issues if issue.severity is Severity.WARNING]
            if opts.include_warnings
            else []
        ),
    )
    logger.info(
        "validated %d annotation(s): %d error(s), %d warning(s)",
        len(annotations),
        len(result.errors),
        len(result.warnings),
    )
    return result


def _location(issue: ValidationIssue) -> str:
    parts = []
    if issue.file_path:
        parts.append(PurePath(issue.file_path).name)
    if issue.line:
        parts.append(f"line {issue.line}")
    return f" ({':'.join(parts)})" if parts else ""


def format_validation_report(result: ValidationResult) -> str:
    if not result.errors and not result.warnings:
        return "MetaMode semantic validation passed: no issues found."

    lines: list[str] = []
    if result.errors:
        lines.append(f"{len(result.errors)} error(s) found:")
        for issue in result.errors:
            lines.append(f"  [ERROR/{issue.rule}]{_location(issue)} {issue.message}")
    if result.warnings:
        if lines:
            lines.append("")
        lines.append(f"{len(result.warnings)} warning(s):")
        for issue in result.warnings:
            lines.append(f"  [WARN/{issue.rule}]{_location(issue)} {issue.message}")
    lines.append("")
    if result.passed:
        lines.append("Validation passed (warnings present).")
    else:
        lines.append("Validation failed: fix errors above to proceed.")
    return "\n".join(lines)
