"""Extract ``@mm:`` structured comments and ``__mm`` embedded objects from source text.

Two independent passes run over each script region of a file:

* the structured-comment pass reads ``@mm:key=value`` lines from block
  comments (``/** ... */``) and from runs of ``#`` or ``//`` line comments;
* the embedded-object pass finds ``__mm: {...}`` / ``__mm = {...}`` literals.

A merge step then folds every embedded object into the structured comment
that names the same owning entity; embedded-object fields win on conflict.
Extraction never raises: unreadable input and malformed literals are reported
as warnings on the file result.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from metamode.annotations.syntax import (
    extract_balanced,
    parse_list,
    split_object_fields,
    strip_quotes,
)
from metamode.annotations.types import (
    AiMeta,
    AiShape,
    AnnotationRecord,
    DepClass,
    Dependencies,
    DepsShape,
    FileParseResult,
    Origin,
    ParsedAnnotation,
    Status,
    Visibility,
)

logger = logging.getLogger(__name__)

COMPOSITE_SUFFIXES = (".vue", ".svelte", ".html", ".htm")
ENTITY_WINDOW_LINES = 10

_BLOCK_START_RE = re.compile(r"^\s*/\*")
_LINE_COMMENT_RE = re.compile(r"^\s*(?:#|//)")
_FIELD_RE = re.compile(r"^@mm:([A-Za-z][A-Za-z0-9_]*(?:[.:][A-Za-z][A-Za-z0-9_]*)?)=(.*)$")
_DECLARATION_RE = re.compile(
    r"(?<![A-Za-z0-9_$])(?:export\s+)?(?:default\s+)?(?:async\s+)?"
    r"(?:const|let|var|function\*?|class|interface|type|enum|def)\s+"
    r"([A-Za-z_$][A-Za-z0-9_$]*)"
)
_EMBEDDED_RE = re.compile(r"__mm\s*[=:]\s*\{")
_SCRIPT_RE = re.compile(r"<script[^>]*>(.*?)</script>", re.IGNORECASE | re.DOTALL)
_SUMMARY_PREFIX_RE = re.compile(r"^summary:(.+)$", re.DOTALL)
_INTEGER_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(slots=True)
class _Region:
    text: str
    line_offset: int


@dataclass(slots=True)
class _Block:
    raw: str
    line: int
    entity_name: str | None


# ---------------------------------------------------------------------------
# Field interpretation
# ---------------------------------------------------------------------------


def _parse_deps(value: str) -> Dependencies:
    trimmed = value.strip()
    if trimmed.startswith("{"):
        deps = Dependencies(shape=DepsShape.CLASSIFIED)
        for bucket_name, bucket_value in split_object_fields(trimmed).items():
            try:
                dep_class = DepClass(bucket_name.lower())
            except ValueError:
                dep_class = DepClass.RUNTIME
            deps.bucket(dep_class).extend(parse_list(bucket_value))
        return deps

    items = parse_list(trimmed)
    deps = Dependencies(shape=DepsShape.FLAT)
    for item in items:
        prefix, sep, target = item.partition(":")
        if sep and prefix:
            try:
                dep_class = DepClass(prefix.strip())
            except ValueError:
                deps.runtime.append(item)
                continue
            deps.shape = DepsShape.CLASSIFIED
            deps.bucket(dep_class).append(target.strip())
        else:
            deps.runtime.append(item)
    return deps


def _structured_ai(record: AnnotationRecord) -> AiMeta:
    if record.ai is None or record.ai.shape is AiShape.TEXT:
        record.ai = AiMeta.structured()
    return record.ai


def _apply_ai_object(record: AnnotationRecord, value: str) -> None:
    ai = _structured_ai(record)
    for key, raw in split_object_fields(value).items():
        key = key.lower()
        if key == "summary":
            ai.summary = strip_quotes(raw)
        elif key == "usage":
            ai.usage = strip_quotes(raw)
        elif key == "examples":
            ai.examples = parse_list(raw)


def _parse_phase(value: str) -> int | None:
    match = _INTEGER_RE.match(value)
    if match is None:
        return None
    return int(match.group(1))


def apply_field(record: AnnotationRecord, key: str, value: str) -> None:
    """Apply one raw ``key``/``value`` pair to *record*.

    Unknown keys are ignored; invalid enum members and unparsable integers are
    silently dropped.
    """
    key = key.lower()
    clean = strip_quotes(value)

    if key == "id":
        record.id = clean
    elif key == "name":
        record.name = clean
    elif key in ("desc", "description"):
        record.desc = clean
    elif key in ("version", "ver"):
        record.version = clean
    elif key == "visibility":
        try:
            record.visibility = Visibility(clean)
        except ValueError:
            pass
    elif key == "status":
        try:
            record.status = Status(clean)
        except ValueError:
            pass
    elif key == "phase":
        phase = _parse_phase(clean)
        if phase is not None:
            record.phase = phase
    elif key == "tags":
        record.tags = parse_list(value)
    elif key == "deps":
        record.deps = _parse_deps(value)
    elif key == "ai":
        if value.strip().startswith("{"):
            _apply_ai_object(record, value.strip())
            return
        summary = _SUMMARY_PREFIX_RE.match(clean)
        if summary:
            _structured_ai(record).summary = summary.group(1).strip()
        elif record.ai is None or not record.ai.is_structured:
            record.ai = AiMeta.from_text(clean)
    elif key in ("ai:summary", "ai.summary"):
        _structured_ai(record).summary = clean
    elif key in ("ai:usage", "ai.usage"):
        _structured_ai(record).usage = clean
    elif key in ("ai:examples", "ai.examples"):
        _structured_ai(record).examples = parse_list(value)


# ---------------------------------------------------------------------------
# Structured-comment pass
# ---------------------------------------------------------------------------


def _clean_comment_line(line: str) -> str:
    stripped = line.strip()
    stripped = re.sub(r"^/\*+", "", stripped)
    stripped = re.sub(r"\*+/$", "", stripped)
    stripped = re.sub(r"^(?:\*|#+|//+)\s?", "", stripped.strip())
    return stripped.strip()


def parse_comment_block(block: str) -> AnnotationRecord:
    record = AnnotationRecord()
    for line in block.splitlines():
        match = _FIELD_RE.match(_clean_comment_line(line))
        if match is None:
            continue
        apply_field(record, match.group(1), match.group(2).strip())
    return record


def _declared_name(line: str) -> str | None:
    match = _DECLARATION_RE.search(line)
    return match.group(1) if match else None


def _entity_after(lines: list[str], index: int) -> str | None:
    """Best-effort name of the first declaration following line *index*."""
    for candidate in lines[index:]:
        stripped = candidate.strip()
        if not stripped or stripped.startswith("@"):
            continue
        return _declared_name(candidate)
    return None


def _comment_blocks(text: str) -> list[_Block]:
    lines = text.split("\n")
    blocks: list[_Block] = []
    index = 0
    while index < len(lines):
        line = lines[index]
        if _BLOCK_START_RE.match(line):
            end = index
            opener_tail = line.split("/*", 1)[1]
            if "*/" not in opener_tail:
                end = index + 1
                while end < len(lines) and "*/" not in lines[end]:
                    end += 1
                end = min(end, len(lines) - 1)
        elif _LINE_COMMENT_RE.match(line):
            end = index
            while end + 1 < len(lines) and _LINE_COMMENT_RE.match(lines[end + 1]):
                end += 1
        else:
            index += 1
            continue

        raw = "\n".join(lines[index : end + 1])
        if "@mm:" in raw:
            entity_name = _entity_after(lines, end + 1)
            blocks.append(_Block(raw=raw, line=index + 1, entity_name=entity_name))
        index = end + 1
    return blocks


def structured_comment_pass(text: str, line_offset: int = 0) -> list[ParsedAnnotation]:
    parsed: list[ParsedAnnotation] = []
    for block in _comment_blocks(text):
        record = parse_comment_block(block.raw)
        if record.is_empty():
            continue
        parsed.append(
            ParsedAnnotation(
                annotation=record,
                source=Origin.STRUCTURED_COMMENT,
                line=block.line + line_offset,
                raw=block.raw,
                entity_name=block.entity_name,
            )
        )
    return parsed


# ---------------------------------------------------------------------------
# Embedded-object pass
# ---------------------------------------------------------------------------


def parse_embedded_object(literal: str) -> AnnotationRecord:
    record = AnnotationRecord()
    for key, value in split_object_fields(literal).items():
        apply_field(record, key, value)
    return record


def _entity_before(preceding: str) -> str | None:
    window = preceding.split("\n")[-(ENTITY_WINDOW_LINES + 1) :]
    for line in reversed(window):
        name = _declared_name(line)
        if name:
            return name
    return None


def embedded_object_pass(
    text: str, line_offset: int = 0
) -> tuple[list[ParsedAnnotation], list[str]]:
    parsed: list[ParsedAnnotation] = []
    warnings: list[str] = []
    seen_lines: set[int] = set()
    for match in _EMBEDDED_RE.finditer(text):
        line = text.count("\n", 0, match.start()) + 1 + line_offset
        if line in seen_lines:
            continue
        brace = match.end() - 1
        literal = extract_balanced(text, brace)
        if literal is None:
            warnings.append(f"Unterminated __mm object at line {line}")
            continue
        seen_lines.add(line)
        record = parse_embedded_object(literal)
        if record.is_empty():
            continue
        parsed.append(
            ParsedAnnotation(
                annotation=record,
                source=Origin.EMBEDDED_OBJECT,
                line=line,
                raw=literal,
                entity_name=_entity_before(text[: match.start()]),
            )
        )
    return parsed, warnings


# ---------------------------------------------------------------------------
# Merge and file-level entry points
# ---------------------------------------------------------------------------


def merge_passes(
    comments: list[ParsedAnnotation], objects: list[ParsedAnnotation]
) -> list[ParsedAnnotation]:
    merged = list(comments)
    for obj in objects:
        match_index = next(
            (
                index
                for index, existing in enumerate(merged)
                if existing.source is Origin.STRUCTURED_COMMENT
                and existing.entity_name
                and existing.entity_name == obj.entity_name
            ),
            None,
        )
        if match_index is None:
            merged.append(obj)
            continue
        merged[match_index] = ParsedAnnotation(
            annotation=merged[match_index].annotation.merged_with(obj.annotation),
            source=Origin.EMBEDDED_OBJECT,
            line=obj.line,
            raw=obj.raw,
            entity_name=obj.entity_name,
        )
    return merged


def _script_regions(content: str, file_path: str) -> list[_Region]:
    if not file_path.lower().endswith(COMPOSITE_SUFFIXES):
        return [_Region(text=content, line_offset=0)]
    regions = [
        _Region(text=match.group(1), line_offset=content.count("\n", 0, match.start(1)))
        for match in _SCRIPT_RE.finditer(content)
        if match.group(1).strip()
    ]
    return regions or [_Region(text=content, line_offset=0)]


def parse_annotations(content: str, file_path: str = "<unknown>") -> FileParseResult:
    comments: list[ParsedAnnotation] = []
    objects: list[ParsedAnnotation] = []
    warnings: list[str] = []
    for region in _script_regions(content, file_path):
        comments.extend(structured_comment_pass(region.text, region.line_offset))
        found, problems = embedded_object_pass(region.text, region.line_offset)
        objects.extend(found)
        warnings.extend(problems)

    annotations = merge_passes(comments, objects)
    logger.debug(
        "parsed %s: %d annotation(s), %d warning(s)", file_path, len(annotations), len(warnings)
    )
    return FileParseResult(file_path=file_path, annotations=annotations, warnings=warnings)


def parse_annotations_file(path: Path | str) -> FileParseResult:
    file_path = str(path)
    target = Path(path)
    if not target.is_file():
        return FileParseResult(file_path=file_path, warnings=[f"File not found: {file_path}"])
    try:
        content = target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("failed to read %s: %s", file_path, exc)
        return FileParseResult(
            file_path=file_path, warnings=[f"Failed to read file: {file_path}: {exc}"]
        )
    return parse_annotations(content, file_path)

