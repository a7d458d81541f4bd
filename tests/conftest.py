"""Shared pytest fixtures for Hermes tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from hermes.core import HermesConfig, ir
from hermes.core.manifest import MAX_WORKERS_VAR, PLACEHOLDER_POLICY_VAR
from hermes.core.project import load_collection

DEMO_COLLECTION = """\
collection {
    name "Demo"
    include "."
    environment 1 env1
}

environment::env1 {
    HOST 1 "api.test"
}

request::r1 {
    url "https://{{HOST}}/x"
    headers h1
}

headers::h1 {
    Authorization 1 "Bearer t"
}
"""


@pytest.fixture(autouse=True)
def clean_hermes_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep HERMES_* variables from the developer's shell out of the tests."""
    monkeypatch.delenv(PLACEHOLDER_POLICY_VAR, raising=False)
    monkeypatch.delenv(MAX_WORKERS_VAR, raising=False)


@pytest.fixture
def write_collection(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """
    Return a function that writes files below a fresh collection directory.

    Keys are paths relative to the collection directory, values file contents.
    """

    def write(files: dict[str, str]) -> Path:
        root = tmp_path / "collection"
        for name, text in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return root

    return write


@pytest.fixture
def load(
    write_collection: Callable[[dict[str, str]], Path],
) -> Callable[..., tuple[ir.CollectionModel, list[ir.Diagnostic]]]:
    """Return a function that writes a collection and loads it."""

    def write_and_load(
        files: dict[str, str], config: HermesConfig | None = None
    ) -> tuple[ir.CollectionModel, list[ir.Diagnostic]]:
        return load_collection(write_collection(files), config or HermesConfig())

    return write_and_load


@pytest.fixture
def demo_collection(write_collection: Callable[[dict[str, str]], Path]) -> Path:
    """Return the directory of a single-file demo collection."""
    return write_collection({"collection.hermes": DEMO_COLLECTION})
