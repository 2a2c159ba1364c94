from pathlib import Path

import dialogcore
from dialogcore.dev.import_graph import (
    build_import_graph,
    detect_cycles,
    external_imports,
    forbidden_edges,
)

ROOT = Path(dialogcore.__file__).resolve().parent


def test_no_import_cycles():
    graph = build_import_graph(ROOT)
    assert "dialogcore.dialog.store" in graph
    cycles = detect_cycles(graph)
    assert not cycles, f"Import cycles detected: {cycles}"


def test_relative_imports_resolve_to_submodules():
    graph = build_import_graph(ROOT)
    assert "dialogcore.dialog.classify" in graph["dialogcore.dialog.llm_backend"]
    assert "dialogcore.metrics" in graph["dialogcore.dialog.prompt"]


def test_layering_rules():
    graph = build_import_graph(ROOT)
    rules = [
        ("dialogcore.llm", "dialogcore.dialog"),
        ("dialogcore.dialog", "dialogcore.runtime"),
        ("dialogcore.metrics", "dialogcore.dialog"),
        ("dialogcore.eventbus", "dialogcore.dialog"),
        ("dialogcore.errors", "dialogcore.config"),
    ]
    violations = forbidden_edges(graph, rules)
    assert not violations, f"Forbidden edges detected: {violations}"


def test_core_does_not_import_service_layer():
    leaks = external_imports(ROOT, ("petdialog", "fastapi", "uvicorn"))
    assert not leaks, f"Service imports inside dialogcore: {leaks}"


def test_detect_cycles_reports_loop():
    graph = {"a": {"b"}, "b": {"c"}, "c": {"a"}}
    cycles = detect_cycles(graph)
    assert cycles == [["a", "b", "c", "a"]]
