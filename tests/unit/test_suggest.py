from pathlib import Path

import pytest

from metamode.annotations.extractor import parse_annotations
from metamode.compiler.builder import compile_database
from metamode.compiler.types import Database
from metamode.context.suggest import (
    infer_tags,
    run_pre_commit_check,
    sibling_phase,
    suggest_annotation,
    suggest_id,
)


@pytest.fixture
def database() -> Database:
    files = {
        "src/lib/core.ts": "// @mm:id=core\n// @mm:desc=Core\n// @mm:phase=3\n",
        "src/lib/other.ts": "// @mm:id=other\n// @mm:desc=Other\n// @mm:phase=7\n",
        "src/ui/view.ts": "// @mm:id=view\n// @mm:desc=View\n",
    }
    return compile_database([parse_annotations(text, path) for path, text in files.items()])


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/lib/My-Component.test.tsx", "my_component_test"),
        ("scripts/__init__.py", "init"),
        ("src\\win\\Path Name.ts", "path_name"),
        ("Makefile", "makefile"),
    ],
)
def test_suggest_id(path: str, expected: str) -> None:
    assert suggest_id(path) == expected


def test_infer_tags_follow_rule_order() -> None:
    assert infer_tags("src/components/helpers/x.ts") == ["ui", "utils"]
    assert infer_tags("scripts/lib/a.py") == ["lib", "scripts"]
    assert infer_tags("src/app/main.ts") == []


def test_sibling_phase_uses_first_declared_match(database: Database) -> None:
    assert sibling_phase("src/lib/new.ts", database) == 3
    assert sibling_phase("src/ui/new.ts", database) is None
    assert sibling_phase("new.ts", database) is None


def test_suggestion_reparses_to_the_suggested_fields(database: Database) -> None:
    block = suggest_annotation("src/lib/new_file.ts", database)
    assert block.splitlines()[0] == "/**"
    assert " * @mm:status=draft" in block.splitlines()

    record = parse_annotations(block + "\n", "new_file.ts").annotations[0].annotation
    assert record.id == "new_file"
    assert record.desc == "Describe this module"
    assert record.tags == ["lib"]
    assert record.phase == 3
    # "draft" is not a status value, so extraction drops it.
    assert record.status is None


def test_pre_commit_reports_only_unannotated_source_files(database: Database) -> None:
    staged = ["src/lib/core.ts", "src/lib/new.ts", "README.md", "scripts/tool.py"]
    missing = run_pre_commit_check(staged, database, project_root=Path.cwd())

    assert [item.file_path for item in missing] == ["src/lib/new.ts", "scripts/tool.py"]
    assert missing[0].suggestion.startswith("/**")
    assert missing[1].suggestion.splitlines()[0] == "# @mm:id=tool"
    assert "# @mm:tags=scripts" in missing[1].suggestion.splitlines()
    assert missing[1].to_dict()["filePath"] == "scripts/tool.py"


def test_pre_commit_matches_absolute_staged_paths(tmp_path: Path, database: Database) -> None:
    staged = [str(tmp_path / "src" / "lib" / "core.ts")]
    assert run_pre_commit_check(staged, database, project_root=tmp_path) == []


def test_pre_commit_with_nothing_staged(database: Database) -> None:
    assert run_pre_commit_check([], database) == []
