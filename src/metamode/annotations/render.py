"""Render annotation fields back into structured-comment text."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

FIELD_ORDER = (
    "id", "name", "desc", "tags", "deps", "ai", "visibility", "version", "phase", "status"
)


def _render_deps(deps: Any) -> str:
    if isinstance(deps, Mapping):
        return ",".join(
            f"{dep_class}:{target}"
            for dep_class in ("runtime", "build", "optional")
            for target in deps.get(dep_class, [])
        )
    return ",".join(str(target) for target in deps)


def field_lines(payload: Mapping[str, Any]) -> list[str]:
    lines: list[str] = []
    for key in FIELD_ORDER:
        value = payload.get(key)
        if value is None:
            continue
        if key == "tags":
            lines.append(f"@mm:tags={','.join(value)}")
        elif key == "deps":
            rendered = _render_deps(value)
            if rendered:
                lines.append(f"@mm:deps={rendered}")
        elif key == "ai" and isinstance(value, Mapping):
            for sub_key in ("summary", "usage"):
                if value.get(sub_key) is not None:
                    lines.append(f"@mm:ai:{sub_key}={value[sub_key]}")
            if value.get("examples"):
                lines.append(f"@mm:ai:examples={','.join(value['examples'])}")
        else:
            lines.append(f"@mm:{key}={value}")
    return lines


def render_comment_block(payload: Mapping[str, Any], *, style: str = "block") -> str:
    """Render *payload* as a ``/** ... */`` block, or as ``#`` lines when style="hash"."""
    lines = field_lines(payload)
    if style == "hash":
        return "\n".join(f"# {line}" for line in lines)
    return "\n".join(["/**", *(f" * {line}" for line in lines), " */"])
