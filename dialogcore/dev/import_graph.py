"""Build the internal import dependency graph (AST based).

Collects edges between project-internal modules of one package, resolving
relative imports and ``from pkg import submodule`` forms to the submodule.
Used in tests to enforce:
  - No cycles between modules.
  - No forbidden edges (layering constraints).
"""
from __future__ import annotations

import ast
from pathlib import Path
from typing import Dict, List, Set, Tuple


def _module_name(package: str, root: Path, py: Path) -> str:
    parts = list(py.relative_to(root).with_suffix("").parts)
    if parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join([package, *parts])


def _resolve_base(mod: str, is_pkg: bool, node: ast.ImportFrom) -> str:
    if not node.level:
        return node.module or ""
    anchor = mod.split(".")
    if not is_pkg:
        anchor = anchor[:-1]
    if node.level > 1:
        anchor = anchor[: len(anchor) - (node.level - 1)]
    if node.module:
        anchor = anchor + node.module.split(".")
    return ".".join(anchor)


def build_import_graph(
    root: str | Path = "dialogcore", package: str | None = None
) -> Dict[str, Set[str]]:
    root_path = Path(root)
    package = package or root_path.name
    files = {
        _module_name(package, root_path, py): py
        for py in root_path.rglob("*.py")
        if "__pycache__" not in py.parts
    }
    known = set(files)
    edges: Dict[str, Set[str]] = {m: set() for m in known}
    for mod, py in files.items():
        is_pkg = py.name == "__init__.py"
        try:
            tree = ast.parse(py.read_text(encoding="utf-8"))
        except SyntaxError:
            continue
        for node in ast.walk(tree):
            targets: List[str] = []
            if isinstance(node, ast.Import):
                targets = [n.name for n in node.names]
            elif isinstance(node, ast.ImportFrom):
                base = _resolve_base(mod, is_pkg, node)
                for n in node.names:
                    sub = f"{base}.{n.name}"
                    targets.append(sub if sub in known else base)
            for tgt in targets:
                if tgt == package or tgt.startswith(package + "."):
                    if tgt != mod:
                        edges[mod].add(tgt)
                        edges.setdefault(tgt, set())
    return edges


def external_imports(
    root: str | Path, prefixes: Tuple[str, ...]
) -> List[Tuple[str, str]]:
    """(module, import) pairs where a file under ``root`` imports ``prefixes``."""
    root_path = Path(root)
    found: List[Tuple[str, str]] = []
    for py in root_path.rglob("*.py"):
        if "__pycache__" in py.parts:
            continue
        tree = ast.parse(py.read_text(encoding="utf-8"))
        mod = _module_name(root_path.name, root_path, py)
        for node in ast.walk(tree):
            names: List[str] = []
            if isinstance(node, ast.Import):
                names = [n.name for n in node.names]
            elif isinstance(node, ast.ImportFrom) and not node.level:
                names = [node.module or ""]
            for name in names:
                if name.startswith(prefixes):
                    found.append((mod, name))
    return found


def detect_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    stack: Set[str] = set()
    cycles: List[List[str]] = []

    def dfs(node: str, path: List[str]):
        if node in stack:
            # path already ends with the repeated node
            idx = path.index(node)
            cycles.append(path[idx:])
            return
        if node in visited:
            return
        visited.add(node)
        stack.add(node)
        for nxt in sorted(graph.get(node, [])):
            dfs(nxt, path + [nxt])
        stack.remove(node)

    for n in sorted(graph):
        if n not in visited:
            dfs(n, [n])
    return cycles


def forbidden_edges(
    graph: Dict[str, Set[str]], rules: List[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    for src, targets in graph.items():
        for dst in targets:
            for a, b in rules:
                if src.startswith(a) and dst.startswith(b):
                    found.append((src, dst))
    return found


__all__ = [
    "build_import_graph",
    "external_imports",
    "detect_cycles",
    "forbidden_edges",
]
