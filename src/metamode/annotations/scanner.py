"""Walk a directory tree and feed annotated source files to the extractor."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from metamode.annotations.extractor import parse_annotations_file
from metamode.annotations.types import FileParseResult
from metamode.errors import ScanError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".vue", ".py")
DEFAULT_EXCLUDE_DIRS = frozenset(
    {"node_modules", "dist", ".git", ".vite", "coverage", "__pycache__", ".venv"}
)


def scan_directory(
    root: Path | str,
    *,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    exclude: Iterable[str] = (),
    recursive: bool = True,
    max_depth: int | None = None,
) -> list[FileParseResult]:
    """Return parse results for files under *root* with annotations or warnings.

    Raises ScanError when *root* does not exist; unreadable subdirectories are
    skipped. Entries are visited in sorted order so repeated scans agree.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise ScanError(f"scan root not found: {root_path}", path=str(root_path))

    suffixes = tuple(extensions)
    excluded = DEFAULT_EXCLUDE_DIRS | set(exclude)
    results: list[FileParseResult] = []

    def _scan(current: Path, depth: int) -> None:
        if max_depth is not None and depth > max_depth:
            return
        try:
            with os.scandir(current) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            logger.warning("skipping unreadable directory %s: %s", current, exc)
            return
        for entry in entries:
            if entry.name in excluded:
                continue
            if entry.is_dir(follow_symlinks=False):
                if recursive:
                    _scan(Path(entry.path), depth + 1)
            elif entry.is_file() and entry.name.endswith(suffixes):
                result = parse_annotations_file(entry.path)
                if result.has_content:
                    results.append(result)

    _scan(root_path, 0)
    logger.info("scanned %s: %d file(s) with annotations", root_path, len(results))
    return results


def scan_roots(
    project_root: Path | str,
    source_dirs: Iterable[str],
    *,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    exclude: Iterable[str] = (),
    max_depth: int | None = None,
) -> list[FileParseResult]:
    """Scan each existing source dir under *project_root*; fall back to the root itself."""
    base = Path(project_root)
    if not base.is_dir():
        raise ScanError(f"project root not found: {base}", path=str(base))
    roots = [base / name for name in source_dirs if (base / name).is_dir()]
    if not roots:
        roots = [base]
    suffixes = tuple(extensions)
    excluded = tuple(exclude)
    results: list[FileParseResult] = []
    for root in roots:
        results.extend(
            scan_directory(root, extensions=suffixes, exclude=excluded, max_depth=max_depth)
        )
    return results
