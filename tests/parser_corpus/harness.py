"""
Shared harness for Hermes corpus tests.

Parses a corpus file and flattens the result into plain data so runs can be
compared with ==.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from hermes.core import ir
from hermes.core.parser import parse_text

LOCATION_KEYS = {"source_file", "span", "line", "column"}


def parse_corpus_file(path: Path, keep_locations: bool = False) -> dict[str, Any]:
    """
    Parse a corpus file and return structured output.

    Returns:
        Dict with:
        - file: str (file name)
        - state: str (parsed or failed)
        - blocks: list[dict] (canonical block dumps)
        - diagnostics: list[dict] (kind, severity, message, line, column)
    """
    parsed = parse_text(path.read_text(encoding="utf-8"), path)
    blocks = [block.model_dump(mode="json") for block in parsed.blocks]
    if not keep_locations:
        blocks = [_strip_locations(b) for b in blocks]

    return {
        "file": path.name,
        "state": parsed.state.value,
        "blocks": [_sort_keys_recursive(b) for b in blocks],
        "diagnostics": [_diagnostic_entry(d) for d in parsed.diagnostics],
    }


def _diagnostic_entry(diagnostic: ir.Diagnostic) -> dict[str, Any]:
    return {
        "kind": diagnostic.kind.value,
        "severity": diagnostic.severity.value,
        "message": diagnostic.message,
        "line": diagnostic.line,
        "column": diagnostic.column,
    }


def _strip_locations(obj: Any) -> Any:
    """Recursively drop source locations."""
    if isinstance(obj, dict):
        return {k: _strip_locations(v) for k, v in obj.items() if k not in LOCATION_KEYS}
    elif isinstance(obj, list):
        return [_strip_locations(item) for item in obj]
    return obj


def _sort_keys_recursive(obj: Any) -> Any:
    """Recursively sort dict keys for deterministic output."""
    if isinstance(obj, dict):
        return {k: _sort_keys_recursive(v) for k, v in sorted(obj.items())}
    elif isinstance(obj, list):
        return [_sort_keys_recursive(item) for item in obj]
    return obj
