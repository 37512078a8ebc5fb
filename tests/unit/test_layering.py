"""Import direction checks between the package layers."""

import ast
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[2] / "context_discovery"


def _imported_modules(path: Path) -> set[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"))
    modules: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom) and node.module:
            modules.add(node.module)
        elif isinstance(node, ast.Import):
            modules.update(alias.name for alias in node.names)
    return modules


@pytest.mark.parametrize(
    "layer, forbidden",
    [
        ("domain", "context_discovery.application"),
        ("domain", "context_discovery.infrastructure"),
        ("infrastructure/database", "context_discovery.application.services"),
    ],
)
def test_layer_does_not_import(layer, forbidden):
    offenders = [
        str(path.relative_to(PACKAGE_ROOT))
        for path in sorted((PACKAGE_ROOT / layer).rglob("*.py"))
        if any(m == forbidden or m.startswith(forbidden + ".") for m in _imported_modules(path))
    ]
    assert offenders == []
