import json

import pytest

from metamode.annotations.extractor import parse_annotations
from metamode.compiler.builder import compile_database
from metamode.compiler.types import Database
from metamode.context import (
    AgentType,
    ContextOptions,
    approximate_tokens,
    build_context,
    build_context_for_agent,
)
from metamode.context.builder import select_entries
from metamode.errors import UnknownAgentTypeError


@pytest.fixture
def database() -> Database:
    files = {
        "src/lib/core.ts": "// @mm:id=core\n// @mm:desc=Core\n// @mm:tags=lib\n",
        "src/ui/ui.ts": (
            "// @mm:id=ui\n// @mm:name=User Interface\n// @mm:desc=Screens\n"
            "// @mm:tags=ui\n// @mm:deps=core, build:bundler\n// @mm:ai=Keep it thin\n"
        ),
        "src/app/app.ts": "// @mm:id=app\n// @mm:desc=App shell\n// @mm:tags=app\n// @mm:deps=ui\n",
        "src/util.ts": "// @mm:id=util\n// @mm:desc=Helpers\n",
    }
    return compile_database([parse_annotations(text, path) for path, text in files.items()])


def _ids(entries) -> list[str]:
    return [entry.id for entry in entries]


class TestSelection:
    def test_ids_pull_in_runtime_closure(self, database: Database) -> None:
        selected, deps_added = select_entries(database, ContextOptions(ids=("app",)))
        assert _ids(selected) == ["app", "ui", "core"]
        assert deps_added == 2

    def test_ids_take_precedence_over_scope(self, database: Database) -> None:
        options = ContextOptions(ids=("util",), scope=("lib",))
        assert _ids(select_entries(database, options)[0]) == ["util"]

    def test_scope_selects_by_any_tag(self, database: Database) -> None:
        selected, deps_added = select_entries(database, ContextOptions(scope=("ui",)))
        assert _ids(selected) == ["ui", "core"]
        assert deps_added == 1

    def test_file_path_fragments(self, database: Database) -> None:
        options = ContextOptions(file_paths=("src/app",), include_deps=False)
        assert _ids(select_entries(database, options)[0]) == ["app"]

    def test_everything_when_nothing_is_requested(self, database: Database) -> None:
        selected, deps_added = select_entries(database, ContextOptions())
        assert _ids(selected) == ["core", "ui", "app", "util"]
        assert deps_added == 0

    def test_unknown_ids_are_ignored(self, database: Database) -> None:
        options = ContextOptions(ids=("ghost", "util"))
        assert _ids(select_entries(database, options)[0]) == ["util"]

    def test_max_entries_applies_after_closure(self, database: Database) -> None:
        options = ContextOptions(ids=("app",), max_entries=2)
        assert _ids(select_entries(database, options)[0]) == ["app", "ui"]

    def test_without_deps(self, database: Database) -> None:
        options = ContextOptions(ids=("app",), include_deps=False)
        assert select_entries(database, options) == ([database.entries["app"]], 0)


class TestRendering:
    def test_markdown(self, database: Database) -> None:
        context = build_context(database, ContextOptions(ids=("ui",), include_deps=False))
        assert "## MetaMode Context" in context.prompt
        assert "### ui - User Interface" in context.prompt
        assert "> Screens" in context.prompt
        assert "**AI**: Keep it thin" in context.prompt
        assert "**Deps**: runtime: [core] | build: [bundler]" in context.prompt
        assert "## Instructions" not in context.prompt

    def test_json(self, database: Database) -> None:
        options = ContextOptions(ids=("core",), include_deps=False, format="json")
        prompt = build_context(database, options).prompt
        body = prompt.split("```json\n", 1)[1].split("\n```", 1)[0]
        assert json.loads(body)[0]["id"] == "core"

    def test_text(self, database: Database) -> None:
        options = ContextOptions(ids=("core",), include_deps=False, format="text")
        prompt = build_context(database, options).prompt
        assert "MetaMode Context:" in prompt
        assert "[core] Core (lib) @ src/lib/core.ts:1" in prompt

    def test_agent_template_adds_instructions(self, database: Database) -> None:
        context = build_context_for_agent("codegen", database, ContextOptions(ids=("core",)))
        assert context.agent_type is AgentType.CODEGEN
        assert context.prompt.startswith("You are a code generation assistant.")
        assert "## Instructions" in context.prompt

    def test_entries_keep_template_fields_plus_anchors(self, database: Database) -> None:
        context = build_context_for_agent("review", database, ContextOptions(ids=("core",)))
        assert set(context.entries[0]) == {"id", "desc", "tags", "filePath", "line"}

    def test_explicit_fields_override_template(self, database: Database) -> None:
        options = ContextOptions(ids=("ui",), include_deps=False, fields=("desc",))
        entry = build_context(database, options).entries[0]
        assert entry == {"id": "ui", "filePath": "src/ui/ui.ts", "line": 1, "desc": "Screens"}


def test_approximate_tokens_rounds_up() -> None:
    assert approximate_tokens("") == 0
    assert approximate_tokens("abcd") == 1
    assert approximate_tokens("abcde") == 2


def test_trims_to_budget() -> None:
    blocks = "".join(
        f"// @mm:id=e{index}\n// @mm:desc={'x' * 100}\nconst E{index} = {index}\n"
        for index in range(50)
    )
    database = compile_database([parse_annotations(blocks, "many.ts")])
    context = build_context(database, ContextOptions(token_budget=200))

    assert context.was_trimmed
    assert context.total_selected == 50
    assert 1 <= len(context.entries) < 50
    assert context.token_count <= 200
    assert context.token_count == approximate_tokens(context.prompt)
    assert [entry["id"] for entry in context.entries] == [
        f"e{index}" for index in range(len(context.entries))
    ]


def test_single_oversized_entry_is_kept(database: Database) -> None:
    context = build_context(database, ContextOptions(ids=("core",), token_budget=1))
    assert len(context.entries) == 1
    assert context.token_count > 1
    assert not context.was_trimmed


def test_unknown_agent_type(database: Database) -> None:
    with pytest.raises(UnknownAgentTypeError):
        build_context(database, ContextOptions(agent_type="poet"))


def test_result_document(database: Database) -> None:
    payload = build_context(database, ContextOptions(scope=("ui",))).to_dict()
    assert set(payload) == {"agentType", "entries", "prompt", "tokenCount", "wasTrimmed", "stats"}
    assert payload["agentType"] == "generic"
    assert payload["stats"] == {"totalSelected": 2, "totalInDb": 4, "depsAdded": 1}
