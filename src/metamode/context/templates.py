"""Prompt templates per agent type."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from metamode.errors import UnknownAgentTypeError


class AgentType(str, Enum):
    CODEGEN = "codegen"
    REFACTOR = "refactor"
    DOCGEN = "docgen"
    REVIEW = "review"
    GENERIC = "generic"


class ContextFormat(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class PromptTemplate:
    name: str
    preamble: str
    relevant_fields: tuple[str, ...]
    instruction: str


PROMPT_TEMPLATES: dict[AgentType, PromptTemplate] = {
    AgentType.CODEGEN: PromptTemplate(
        name="Code Generator",
        preamble=(
            "You are a code generation assistant. The following MetaMode annotations describe "
            "modules in this codebase: their IDs, descriptions, tags, dependencies, and AI hints. "
            "Use this context to generate code that integrates correctly with the existing "
            "architecture."
        ),
        relevant_fields=("id", "name", "desc", "tags", "deps", "ai", "filePath", "status"),
        instruction=(
            "When generating code, reference existing module IDs in @mm:deps annotations. "
            "Follow the visibility rules: do not let public modules depend on internal ones. "
            "Add @mm: annotations to any new functions or modules you create."
        ),
    ),
    AgentType.REFACTOR: PromptTemplate(
        name="Refactoring Assistant",
        preamble=(
            "You are a refactoring assistant. The following MetaMode annotations describe the "
            "dependency graph and semantic roles of modules in this codebase. "
            "Use this context to plan safe refactors that preserve all declared dependencies."
        ),
        relevant_fields=("id", "name", "desc", "tags", "deps", "visibility", "status", "filePath"),
        instruction=(
            "Identify all callers (dependents) before renaming or moving a module. "
            "Preserve @mm:id values across renames to avoid breaking dependency references. "
            "After refactoring, update @mm:deps to reflect any changed module IDs."
        ),
    ),
    AgentType.DOCGEN: PromptTemplate(
        name="Documentation Generator",
        preamble=(
            "You are a documentation generator. The following MetaMode annotations describe "
            "modules with their descriptions, tags, phases, and AI summaries. "
            "Use this context to generate accurate, concise documentation."
        ),
        relevant_fields=("id", "name", "desc", "tags", "phase", "status", "visibility", "ai"),
        instruction=(
            "Generate documentation that matches the semantic level of the @mm:desc field. "
            "Include usage examples from @mm:ai.examples when available. "
            "Group related modules by their @mm:tags for better readability."
        ),
    ),
    AgentType.REVIEW: PromptTemplate(
        name="Code Reviewer",
        preamble=(
            "You are a code reviewer. The following MetaMode annotations describe the intended "
            "architecture, visibility contracts, and dependency structure of this codebase. "
            "Use this context to identify violations of the declared architecture."
        ),
        relevant_fields=(
            "id",
            "name",
            "desc",
            "tags",
            "deps",
            "visibility",
            "status",
            "filePath",
            "line",
        ),
        instruction=(
            "Flag any code that violates visibility contracts (@mm:visibility rules). "
            "Check that all @mm:deps references actually exist in the codebase. "
            "Warn if a module marked @mm:status=deprecated is still being depended on."
        ),
    ),
    AgentType.GENERIC: PromptTemplate(
        name="AI Assistant",
        preamble=(
            "The following MetaMode annotations describe modules in this codebase. "
            "Each entry has an ID, description, tags, dependencies, and optional AI hints."
        ),
        relevant_fields=(
            "id",
            "name",
            "desc",
            "tags",
            "deps",
            "status",
            "visibility",
            "phase",
            "ai",
            "filePath",
        ),
        instruction="",
    ),
}


def resolve_agent_type(value: AgentType | str) -> AgentType:
    try:
        return AgentType(value)
    except ValueError as exc:
        known = ", ".join(agent.value for agent in AgentType)
        raise UnknownAgentTypeError(f"unknown agent type {value!r} (known: {known})") from exc


def get_template(agent_type: AgentType | str) -> PromptTemplate:
    return PROMPT_TEMPLATES[resolve_agent_type(agent_type)]
