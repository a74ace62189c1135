"""Annotation suggestions for unannotated files and the advisory pre-commit gate."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any

from metamode.annotations.render import render_comment_block
from metamode.compiler.types import Database

PRECOMMIT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".vue", ".py")
PLACEHOLDER_DESC = "Describe this module"
DRAFT_STATUS = "draft"

# Directory name -> inferred tag, in output order.
TAG_RULES: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({"lib"}), "lib"),
    (frozenset({"ui", "components"}), "ui"),
    (frozenset({"utils", "helpers"}), "utils"),
    (frozenset({"scripts"}), "scripts"),
)

_NON_WORD_RE = re.compile(r"[^A-Za-z0-9_]")
_UNDERSCORES_RE = re.compile(r"_+")


@dataclass(frozen=True, slots=True)
class MissingAnnotation:
    file_path: str
    suggestion: str

    def to_dict(self) -> dict[str, str]:
        return {"filePath": self.file_path, "suggestion": self.suggestion}


def suggest_id(file_path: str) -> str:
    stem = PurePath(file_path.replace("\\", "/")).name
    stem = stem.rsplit(".", 1)[0] if "." in stem[1:] else stem
    sanitized = _UNDERSCORES_RE.sub("_", _NON_WORD_RE.sub("_", stem)).strip("_")
    return sanitized.lower()


def infer_tags(file_path: str) -> list[str]:
    parts = set(file_path.replace("\\", "/").split("/"))
    return [tag for names, tag in TAG_RULES if parts & names]


def sibling_phase(file_path: str, database: Database) -> int | None:
    """Phase of the first entry declaring one that lives in the same directory name."""
    parts = file_path.replace("\\", "/").split("/")
    if len(parts) < 2:
        return None
    parent = parts[-2]
    for entry in database.entries.values():
        if entry.phase is None:
            continue
        entry_parts = entry.file_path.replace("\\", "/").split("/")
        if len(entry_parts) >= 2 and entry_parts[-2] == parent:
            return entry.phase
    return None


def suggest_annotation(file_path: str, database: Database, *, style: str = "block") -> str:
    payload: dict[str, Any] = {"id": suggest_id(file_path), "desc": PLACEHOLDER_DESC}
    tags = infer_tags(file_path)
    if tags:
        payload["tags"] = tags
    phase = sibling_phase(file_path, database)
    if phase is not None:
        payload["phase"] = phase
    payload["status"] = DRAFT_STATUS
    return render_comment_block(payload, style=style)


def run_pre_commit_check(
    staged_files: Iterable[str],
    database: Database,
    *,
    project_root: Path | str | None = None,
) -> list[MissingAnnotation]:
    """Report staged source files that have no compiled entry, with a suggestion each.

    Advisory only: the result never signals failure by itself.
    """
    root = Path(project_root) if project_root is not None else Path.cwd()
    annotated = {entry.file_path for entry in database.entries.values()}
    missing: list[MissingAnnotation] = []
    for staged in staged_files:
        if not staged.endswith(PRECOMMIT_EXTENSIONS):
            continue
        relative = Path(os.path.relpath(staged, root)).as_posix()
        if staged in annotated or relative in annotated:
            continue
        style = "hash" if staged.endswith(".py") else "block"
        missing.append(
            MissingAnnotation(
                file_path=staged,
                suggestion=suggest_annotation(staged, database, style=style),
            )
        )
    return missing
