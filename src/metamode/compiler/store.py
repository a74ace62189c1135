"""Persist compiled databases as JSON artifacts with a content digest."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path

from metamode.compiler.types import DB_FORMAT, Database
from metamode.errors import DatabaseFormatError

logger = logging.getLogger(__name__)

DATABASE_FILE = "metamode-db.json"
DATABASE_HASH_FILE = "metamode-db.sha256"
PROD_DATABASE_FILE = "metamode-db.prod.json"


def encode_database(database: Database) -> str:
    return json.dumps(database.to_dict(), indent=2, ensure_ascii=False)


def write_database(database: Database, out_dir: Path) -> tuple[Path, Path]:
    """Write the database and its sha256 digest into *out_dir*."""
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / DATABASE_FILE
    hash_path = out_dir / DATABASE_HASH_FILE

    encoded = encode_database(database)
    out_path.write_text(encoded + "\n", encoding="utf-8")
    digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()
    hash_path.write_text(digest + "\n", encoding="utf-8")
    logger.info("wrote %s (%d entries)", out_path, len(database.entries))
    return out_path, hash_path


def read_database(path: Path) -> Database:
    """Load a database file written by write_database.

    Accepts either the file itself or the directory holding it.
    """
    if path.is_dir():
        path = path / DATABASE_FILE
    if not path.exists():
        raise DatabaseFormatError(f"database not found: {path}")
    try:
        decoded = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DatabaseFormatError(f"invalid JSON in {path}: {exc}") from exc
    if not isinstance(decoded, dict):
        raise DatabaseFormatError(f"expected an object in {path}")
    build_info = decoded.get("buildInfo")
    fmt = build_info.get("format") if isinstance(build_info, dict) else None
    if fmt != DB_FORMAT:
        raise DatabaseFormatError(f"unsupported database format {fmt!r} in {path}")
    try:
        return Database.from_dict(decoded)
    except (KeyError, TypeError, ValueError) as exc:
        raise DatabaseFormatError(f"malformed database {path}: {exc}") from exc


def verify_digest(out_dir: Path) -> bool:
    """True when the stored digest matches the database file on disk."""
    out_path = out_dir / DATABASE_FILE
    hash_path = out_dir / DATABASE_HASH_FILE
    if not out_path.exists() or not hash_path.exists():
        return False
    encoded = out_path.read_text(encoding="utf-8").rstrip("\n")
    expected = hash_path.read_text(encoding="utf-8").strip()
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest() == expected
