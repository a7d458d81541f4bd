"""
Collection loading utilities.

Provides the single entry point for the discover -> parse -> link pipeline.
"""

import logging
from pathlib import Path

from . import ir
from .errors import make_link_error
from .fileset import discover_collection, locate_root
from .linker import build_collection
from .manifest import HermesConfig, resolve_config

logger = logging.getLogger(__name__)


def load_collection(
    root_path: Path | str,
    config: HermesConfig | None = None,
) -> tuple[ir.CollectionModel, list[ir.Diagnostic]]:
    """
    Load a Hermes collection and return its resolved model.

    This performs the whole pipeline:
    1. Resolve configuration (hermes.toml + HERMES_* variables)
    2. Discover and parse the files reachable from the collection root
    3. Link and resolve them into a CollectionModel

    Nothing is raised for problems in the collection itself; they come back
    as diagnostics next to a possibly partial model.

    Args:
        root_path: The collection.hermes file or the directory holding it
        config: Optional explicit configuration. If not provided, it is
                resolved from the collection directory.

    Returns:
        Tuple of (CollectionModel, diagnostics)

    Example:
        >>> from hermes.core import load_collection
        >>> model, diagnostics = load_collection("./my-api")
        >>> print(model.name, len(model.requests))
    """
    root_path = Path(root_path)
    if config is None:
        collection_dir = root_path.resolve()
        if not collection_dir.is_dir():
            collection_dir = collection_dir.parent
        config = resolve_config(collection_dir)

    root = locate_root(root_path, config)
    if not root.is_file():
        error = make_link_error(f"Collection root not found: {root}")
        diagnostic = ir.Diagnostic.from_error(ir.DiagnosticKind.IO_ERROR, error)
        logger.info("No collection at %s", root)
        return ir.CollectionModel(root=root, diagnostics=[diagnostic]), [diagnostic]

    discovery = discover_collection(root, config)
    model, diagnostics = build_collection(discovery, config)

    logger.info(
        "Loaded collection '%s': %d files, %d requests, %d diagnostics",
        model.name,
        len(model.files),
        len(model.requests),
        len(diagnostics),
    )
    return model, diagnostics
