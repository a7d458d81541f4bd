import logging

from . import ir
from .fileset import Discovery
from .linker_impl import (
    Resolver,
    build_symbol_table,
    collection_metadata,
    find_collection_root,
    merge_env_files,
    unique_diagnostics,
)
from .manifest import HermesConfig

logger = logging.getLogger(__name__)


def build_collection(
    discovery: Discovery, config: HermesConfig
) -> tuple[ir.CollectionModel, list[ir.Diagnostic]]:
    """
    Build a complete CollectionModel by linking all discovered files.

    Performs:
    1. Collection root validation
    2. Symbol table building (duplicate and reserved-prefix detection)
    3. Environment layering
    4. Request resolution and placeholder substitution

    Every problem is reported as a diagnostic; the model is always built,
    possibly partially.

    Args:
        discovery: Parsed files of the collection, in discovery order
        config: Loader configuration

    Returns:
        Tuple of (collection model, diagnostics)
    """
    files = discovery.files
    diagnostics: list[ir.Diagnostic] = list(discovery.diagnostics)
    for parsed in files:
        diagnostics.extend(parsed.diagnostics)

    states = {
        parsed.path: ir.FileState.FAILED if parsed.failed else ir.FileState.PARSED
        for parsed in files
    }

    # 1. Find the collection block
    collection, root_diagnostics = find_collection_root(files, discovery.root)
    diagnostics.extend(root_diagnostics)
    name, description, metadata_diagnostics = collection_metadata(collection)
    diagnostics.extend(metadata_diagnostics)

    # 2. Build symbol table
    symbols, symbol_diagnostics = build_symbol_table(files)
    diagnostics.extend(symbol_diagnostics)
    for path, state in states.items():
        if state == ir.FileState.PARSED:
            states[path] = ir.FileState.LINKED
    logger.debug(
        "Linked %d identifiers, %d requests, %d environments",
        len(symbols.blocks),
        len(symbols.requests),
        len(symbols.environments),
    )

    # 3. Layer environments
    resolver = Resolver(symbols, merge_env_files(files), config.placeholder_policy)
    environments = resolver.layer_environments(collection)

    # 4. Resolve requests
    collection_dir = discovery.root.parent
    requests = [resolver.request(block, collection_dir) for block in symbols.requests]
    diagnostics.extend(resolver.diagnostics)

    for path, state in states.items():
        if state == ir.FileState.LINKED:
            states[path] = ir.FileState.RESOLVED

    diagnostics = unique_diagnostics(diagnostics)
    model = ir.CollectionModel(
        name=name or ir.DEFAULT_COLLECTION_NAME,
        description=description,
        root=discovery.root,
        requests=requests,
        environments=environments,
        active_environment=resolver.active,
        files=[ir.SourceFileInfo(path=path, state=state) for path, state in states.items()],
        diagnostics=diagnostics,
    )
    return model, diagnostics
