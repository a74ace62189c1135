"""Delimiter-aware text helpers shared by both annotation passes."""

from __future__ import annotations

QUOTES = ("'", '"', "`")
OPENERS = "[{("
CLOSERS = "]})"


def strip_quotes(value: str) -> str:
    """Trim whitespace and one layer of surrounding quote characters."""
    cleaned = value.strip()
    if cleaned[:1] in QUOTES:
        cleaned = cleaned[1:]
    if cleaned[-1:] in QUOTES:
        cleaned = cleaned[:-1]
    return cleaned.strip()


def unwrap_brackets(value: str, opener: str = "[", closer: str = "]") -> str:
    trimmed = value.strip()
    if trimmed.startswith(opener) and trimmed.endswith(closer):
        return trimmed[1:-1]
    return trimmed


def parse_list(value: str) -> list[str]:
    """Parse ``a, b`` or ``[a, 'b']`` into cleaned, non-empty items."""
    inner = unwrap_brackets(value)
    items = [strip_quotes(item) for item in split_top_level(inner, ",")]
    return [item for item in items if item]


def find_closing_brace(content: str, start: int) -> int | None:
    """Return the index of the ``}`` matching the ``{`` at *start*.

    Braces inside quoted strings are ignored; a backslash escapes the next
    character inside a string.
    """
    if start >= len(content) or content[start] != "{":
        return None
    depth = 0
    quote: str | None = None
    index = start
    while index < len(content):
        char = content[index]
        if quote is not None:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in QUOTES:
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return None


def extract_balanced(content: str, start: int) -> str | None:
    end = find_closing_brace(content, start)
    if end is None:
        return None
    return content[start : end + 1]


def split_top_level(content: str, delimiter: str = ",") -> list[str]:
    """Split on *delimiter* outside of brackets and quoted strings."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    escaped = False
    for char in content:
        if quote is not None:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in QUOTES:
            quote = char
        elif char in OPENERS:
            depth += 1
        elif char in CLOSERS:
            depth -= 1
        elif char == delimiter and depth == 0:
            piece = "".join(current).strip()
            if piece:
                parts.append(piece)
            current = []
            continue
        current.append(char)
    piece = "".join(current).strip()
    if piece:
        parts.append(piece)
    return parts


def _key_separator(pair: str) -> int:
    if pair[:1] in QUOTES:
        closing = pair.find(pair[0], 1)
        if closing == -1:
            return -1
        return pair.find(":", closing + 1)
    return pair.find(":")


def split_object_fields(literal: str) -> dict[str, str]:
    """Recover ``key: value`` pairs from one level of an object literal.

    Values are returned raw (nested objects and arrays untouched); keys are
    unquoted. Later duplicates win.
    """
    body = unwrap_brackets(literal, "{", "}").strip()
    result: dict[str, str] = {}
    for pair in split_top_level(body, ","):
        separator = _key_separator(pair)
        if separator == -1:
            continue
        key = strip_quotes(pair[:separator])
        if key:
            result[key] = pair[separator + 1 :].strip()
    return result
