"""Annotation database compiler."""

from metamode.compiler.builder import compile_database, compile_project
from metamode.compiler.store import read_database, write_database
from metamode.compiler.types import CompiledEntry, Database, DependencyGraph

__all__ = [
    "CompiledEntry",
    "Database",
    "DependencyGraph",
    "compile_database",
    "compile_project",
    "read_database",
    "write_database",
]
