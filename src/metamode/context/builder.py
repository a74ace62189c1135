"""Context assembly and token budgeting for agent prompts."""

from __future__ import annotations

import json
import logging
import math
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from metamode.annotations.types import DepClass
from metamode.compiler.types import CompiledEntry, Database
from metamode.context.templates import AgentType, ContextFormat, PromptTemplate, get_template
from metamode.query.api import MetamodeApi

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100
DEFAULT_TOKEN_BUDGET = 4000
ANCHOR_FIELDS = ("id", "filePath", "line")


@dataclass(slots=True)
class ContextOptions:
    agent_type: AgentType | str = AgentType.GENERIC
    scope: tuple[str, ...] = ()
    ids: tuple[str, ...] = ()
    file_paths: tuple[str, ...] = ()
    include_deps: bool = True
    format: ContextFormat | str = ContextFormat.MARKDOWN
    max_entries: int = DEFAULT_MAX_ENTRIES
    token_budget: int = DEFAULT_TOKEN_BUDGET
    fields: tuple[str, ...] | None = None


@dataclass(slots=True)
class BuiltContext:
    agent_type: AgentType
    entries: list[dict[str, Any]]
    prompt: str
    token_count: int
    was_trimmed: bool
    total_selected: int
    total_in_db: int
    deps_added: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentType": self.agent_type.value,
            "entries": self.entries,
            "prompt": self.prompt,
            "tokenCount": self.token_count,
            "wasTrimmed": self.was_trimmed,
            "stats": {
                "totalSelected": self.total_selected,
                "totalInDb": self.total_in_db,
                "depsAdded": self.deps_added,
            },
        }


def approximate_tokens(text: str) -> int:
    """~4 characters per token, rounded up."""
    return math.ceil(len(text) / 4)


def _has_any_tag(entry: CompiledEntry, tags: Iterable[str]) -> bool:
    entry_tags = entry.tags or []
    return any(tag in entry_tags for tag in tags)


def select_entries(
    database: Database, options: ContextOptions
) -> tuple[list[CompiledEntry], int]:
    """Pick entries by ids, else tag scope, else file-path substring, else everything.

    The runtime dependency closure of the selection is appended unless
    ``include_deps`` is off; max_entries is applied last. Returns the entries
    and the number pulled in as dependencies.
    """
    entries = database.entries
    if options.ids:
        selected = [entries[entry_id] for entry_id in options.ids if entry_id in entries]
    elif options.scope:
        selected = [entry for entry in entries.values() if _has_any_tag(entry, options.scope)]
    elif options.file_paths:
        selected = [
            entry
            for entry in entries.values()
            if any(fragment in entry.file_path for fragment in options.file_paths)
        ]
    else:
        selected = list(entries.values())

    deps_added = 0
    if options.include_deps:
        api = MetamodeApi(database)
        chosen = {entry.id for entry in selected}
        queue = deque(entry.id for entry in selected)
        visited: set[str] = set()
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            for dep in api.get_dependencies(current, DepClass.RUNTIME):
                if dep in chosen or dep not in entries:
                    continue
                selected.append(entries[dep])
                chosen.add(dep)
                deps_added += 1
                queue.append(dep)

    return selected[: options.max_entries], deps_added


def to_context_entry(entry: CompiledEntry, fields: Iterable[str]) -> dict[str, Any]:
    payload = entry.to_dict()
    record = {name: payload[name] for name in ANCHOR_FIELDS}
    for name in fields:
        if name not in ANCHOR_FIELDS and name in payload:
            record[name] = payload[name]
    return record


def _render_markdown_entry(entry: dict[str, Any]) -> str:
    name = entry.get("name")
    lines = [f"### {entry['id']} - {name}" if name else f"### {entry['id']}"]
    if entry.get("desc"):
        lines.append(f"> {entry['desc']}")

    meta = []
    if entry.get("tags"):
        meta.append(f"tags: {', '.join(entry['tags'])}")
    if entry.get("status"):
        meta.append(f"status: {entry['status']}")
    if entry.get("visibility"):
        meta.append(f"visibility: {entry['visibility']}")
    if entry.get("phase") is not None:
        meta.append(f"phase: {entry['phase']}")
    meta.append(f"file: {entry['filePath']}:{entry['line']}")
    lines.append(f"*{' | '.join(meta)}*")

    ai = entry.get("ai")
    if isinstance(ai, str) and ai:
        lines.append(f"**AI**: {ai}")
    elif isinstance(ai, dict):
        if ai.get("summary"):
            lines.append(f"**AI Summary**: {ai['summary']}")
        if ai.get("usage"):
            lines.append(f"**Usage**: {ai['usage']}")
        if ai.get("examples"):
            lines.append(f"**Examples**: {'; '.join(ai['examples'])}")

    deps = entry.get("deps") or {}
    parts = [
        f"{dep_class}: [{', '.join(deps[dep_class])}]"
        for dep_class in ("runtime", "build", "optional")
        if deps.get(dep_class)
    ]
    if parts:
        lines.append(f"**Deps**: {' | '.join(parts)}")
    return "\n".join(lines)


def _render_text_entry(entry: dict[str, Any]) -> str:
    parts = [f"[{entry['id']}]"]
    if entry.get("desc"):
        parts.append(entry["desc"])
    if entry.get("tags"):
        parts.append(f"({', '.join(entry['tags'])})")
    parts.append(f"@ {entry['filePath']}:{entry['line']}")
    return " ".join(parts)


def render_prompt(
    entries: list[dict[str, Any]], template: PromptTemplate, fmt: ContextFormat | str
) -> str:
    lines: list[str] = []
    if template.preamble:
        lines.extend([template.preamble, ""])

    fmt = ContextFormat(fmt)
    if fmt is ContextFormat.MARKDOWN:
        lines.extend(["## MetaMode Context", ""])
        for entry in entries:
            lines.extend([_render_markdown_entry(entry), ""])
    elif fmt is ContextFormat.JSON:
        lines.extend(["## MetaMode Context (JSON)", "", "```json"])
        lines.append(json.dumps(entries, indent=2, ensure_ascii=False))
        lines.extend(["```", ""])
    else:
        lines.append("MetaMode Context:")
        lines.extend(_render_text_entry(entry) for entry in entries)
        lines.append("")

    if template.instruction:
        lines.extend(["## Instructions", "", template.instruction, ""])
    return "\n".join(lines)


def build_context(database: Database, options: ContextOptions | None = None) -> BuiltContext:
    """Select, render and trim a context prompt for one agent.

    While the prompt estimate exceeds the budget and more than one entry
    remains, the last entry is dropped and the prompt re-rendered. A single
    oversized entry is kept even when it alone exceeds the budget.
    """
    opts = options or ContextOptions()
    template = get_template(opts.agent_type)
    fields = opts.fields if opts.fields is not None else template.relevant_fields

    selected, deps_added = select_entries(database, opts)
    entries = [to_context_entry(entry, fields) for entry in selected]
    prompt = render_prompt(entries, template, opts.format)
    was_trimmed = False
    while approximate_tokens(prompt) > opts.token_budget and len(entries) > 1:
        entries.pop()
        prompt = render_prompt(entries, template, opts.format)
        was_trimmed = True

    if was_trimmed:
        logger.info(
            "trimmed context from %d to %d entries for a %d token budget",
            len(selected),
            len(entries),
            opts.token_budget,
        )
    return BuiltContext(
        agent_type=AgentType(opts.agent_type),
        entries=entries,
        prompt=prompt,
        token_count=approximate_tokens(prompt),
        was_trimmed=was_trimmed,
        total_selected=len(selected),
        total_in_db=database.stats.total_annotations,
        deps_added=deps_added,
    )


def build_context_for_agent(
    agent_type: AgentType | str, database: Database, options: ContextOptions | None = None
) -> BuiltContext:
    return build_context(database, replace(options or ContextOptions(), agent_type=agent_type))
