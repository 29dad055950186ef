"""Handler source loading.

Sources are parsed with ``ast`` and never imported or executed.
"""

import ast
import logging
from dataclasses import dataclass
from pathlib import Path

from route_doc_agent.errors import SourceError

logger = logging.getLogger(__name__)

SKIP_DIRS = {"__pycache__", "node_modules", "venv"}


@dataclass(frozen=True)
class SourceModule:
    path: Path
    tree: ast.Module


def load_sources(source: Path) -> list[SourceModule]:
    """Parse a single .py file, or every .py file below a directory."""
    if source.is_file():
        files = [source]
    elif source.is_dir():
        files = sorted(p for p in source.rglob("*.py") if not _is_skipped(p.relative_to(source)))
    else:
        raise SourceError(f"Handler source '{source}' does not exist", context={"source": str(source)})

    modules = []
    for file_path in files:
        modules.append(SourceModule(path=file_path, tree=_parse_file(file_path)))
    logger.debug("Parsed %d source file(s) under %s", len(modules), source)
    return modules


def _parse_file(file_path: Path) -> ast.Module:
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SourceError(f"Cannot read handler source {file_path}: {e}", context={"file": str(file_path)}) from e
    try:
        return ast.parse(text, filename=str(file_path))
    except SyntaxError as e:
        raise SourceError(
            f"Cannot parse handler source {file_path}: {e.msg} (line {e.lineno})",
            context={"file": str(file_path), "line": e.lineno},
        ) from e


def _is_skipped(relative: Path) -> bool:
    return any(part.startswith(".") or part in SKIP_DIRS for part in relative.parts[:-1])


def find_model_classes(modules: list[SourceModule]) -> dict[str, ast.ClassDef]:
    """Collect classes that declare annotated fields, keyed by class name."""
    models: dict[str, ast.ClassDef] = {}
    for module in modules:
        for node in ast.walk(module.tree):
            if isinstance(node, ast.ClassDef) and _has_annotated_fields(node):
                models.setdefault(node.name, node)
    return models


def _has_annotated_fields(node: ast.ClassDef) -> bool:
    return any(isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name) for stmt in node.body)


def terminal_name(node: ast.AST) -> str:
    """Return the last component of a Name/Attribute chain (or of a call to one)."""
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return ""
