"""Declared shape of a single annotation, checked by the schema-validates rule."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
)

from metamode.annotations.types import DEP_CLASSES, AnnotationRecord, Status, Visibility

ID_PATTERN = r"^[A-Za-z0-9_$][A-Za-z0-9_$.:/@-]*$"
AI_SUMMARY_MAX = 200

Tag = Annotated[str, StringConstraints(min_length=1, max_length=50)]


class AiSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    summary: str | None = Field(default=None, max_length=AI_SUMMARY_MAX)
    usage: str | None = Field(default=None, max_length=1000)
    examples: list[str] | None = Field(default=None, max_length=20)


class AnnotationSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, min_length=1, max_length=128, pattern=ID_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    desc: str | None = Field(default=None, min_length=1, max_length=1000)
    tags: list[Tag] | None = Field(default=None, max_length=20)
    deps: list[str] | dict[str, list[str]] | None = None
    ai: str | AiSchema | None = None
    visibility: Visibility | None = None
    version: str | None = Field(default=None, min_length=1, max_length=32)
    phase: int | None = Field(default=None, ge=0)
    status: Status | None = None

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and len(set(value)) != len(value):
            duplicate = next(tag for tag in value if value.count(tag) > 1)
            raise ValueError(f'tags must be unique (duplicate found: "{duplicate}")')
        return value

    @field_validator("deps")
    @classmethod
    def _known_dep_classes(cls, value: Any) -> Any:
        if isinstance(value, dict):
            allowed = {dep_class.value for dep_class in DEP_CLASSES}
            unknown = sorted(set(value) - allowed)
            if unknown:
                raise ValueError(
                    f"unknown dependency class {unknown[0]!r}; allowed: runtime, build, optional"
                )
        return value

    @field_validator("ai")
    @classmethod
    def _ai_text_length(cls, value: Any) -> Any:
        if isinstance(value, str) and len(value) > AI_SUMMARY_MAX:
            raise ValueError(f"ai summary exceeds maximum length of {AI_SUMMARY_MAX} characters")
        return value


def schema_errors(record: AnnotationRecord) -> list[str]:
    """Return one human-readable message per schema violation in *record*."""
    try:
        AnnotationSchema.model_validate(record.to_dict())
    except ValidationError as exc:
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"])
            messages.append(f'"@mm:{location}" {error["msg"]}')
        return messages
    return []
