import hashlib
import json
from pathlib import Path

import pytest

from metamode.annotations.extractor import parse_annotations
from metamode.compiler.builder import compile_database
from metamode.compiler.store import (
    DATABASE_FILE,
    DATABASE_HASH_FILE,
    read_database,
    verify_digest,
    write_database,
)
from metamode.errors import DatabaseFormatError, MetamodeError


def _database():
    result = parse_annotations(
        "/**\n * @mm:id=a\n * @mm:desc=Alpha\n * @mm:deps=b\n */\nconst Alpha = 1\n"
        "/**\n * @mm:id=b\n * @mm:ai=Short hint\n */\nconst Beta = 2\n",
        "src/ab.ts",
    )
    return compile_database([result], timestamp="2026-01-01T00:00:00+00:00")


def test_write_then_read_roundtrip(tmp_path: Path) -> None:
    database = _database()
    out_path, hash_path = write_database(database, tmp_path / ".metamode")

    assert out_path.name == DATABASE_FILE
    assert hash_path.name == DATABASE_HASH_FILE
    encoded = out_path.read_text(encoding="utf-8").rstrip("\n")
    assert hash_path.read_text(encoding="utf-8").strip() == hashlib.sha256(
        encoded.encode("utf-8")
    ).hexdigest()
    assert verify_digest(tmp_path / ".metamode")

    loaded = read_database(tmp_path / ".metamode")
    assert loaded.to_dict() == database.to_dict()
    assert loaded.graph.nodes["b"].dependents == ["a"]


def test_digest_detects_edits(tmp_path: Path) -> None:
    out_path, _ = write_database(_database(), tmp_path)
    out_path.write_text(out_path.read_text(encoding="utf-8").replace("Alpha", "Omega"))
    assert verify_digest(tmp_path) is False


def test_read_missing_database(tmp_path: Path) -> None:
    with pytest.raises(DatabaseFormatError):
        read_database(tmp_path / "absent.json")


def test_read_rejects_malformed_bytes(tmp_path: Path) -> None:
    path = tmp_path / DATABASE_FILE
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(DatabaseFormatError):
        read_database(path)


def test_read_rejects_wrong_format(tmp_path: Path) -> None:
    path = tmp_path / DATABASE_FILE
    payload = _database().to_dict()
    payload["buildInfo"]["format"] = "metamode-v1"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(MetamodeError):
        read_database(path)


def test_read_rejects_wrong_shape(tmp_path: Path) -> None:
    path = tmp_path / DATABASE_FILE
    path.write_text(json.dumps({"buildInfo": {"format": "metamode-v2"}}), encoding="utf-8")
    with pytest.raises(DatabaseFormatError):
        read_database(path)
