"""Agent context assembly."""

from metamode.context.builder import (
    BuiltContext,
    ContextOptions,
    approximate_tokens,
    build_context,
    build_context_for_agent,
)
from metamode.context.suggest import run_pre_commit_check, suggest_annotation
from metamode.context.templates import PROMPT_TEMPLATES, AgentType, ContextFormat

__all__ = [
    "PROMPT_TEMPLATES",
    "AgentType",
    "BuiltContext",
    "ContextFormat",
    "ContextOptions",
    "approximate_tokens",
    "build_context",
    "build_context_for_agent",
    "run_pre_commit_check",
    "suggest_annotation",
]
