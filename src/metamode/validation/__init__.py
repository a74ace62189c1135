"""Semantic validation of annotation corpora."""

from metamode.validation.engine import (
    ValidationResult,
    ValidatorOptions,
    format_validation_report,
    validate_annotations,
)
from metamode.validation.rules import Severity, ValidationIssue

__all__ = [
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "ValidatorOptions",
    "format_validation_report",
    "validate_annotations",
]
