"""
Loader configuration for Hermes collections.

Configuration is read from an optional ``hermes.toml`` placed next to
``collection.hermes``:

    [loader]
    placeholder_policy = "report"   # "report" | "passthrough"
    max_workers = 4
    root_file = "collection.hermes"
    extension = ".hermes"

Environment variables take precedence over the file:

    HERMES_PLACEHOLDER_POLICY   report | passthrough
    HERMES_MAX_WORKERS          positive integer
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "hermes.toml"
DEFAULT_ROOT_FILE = "collection.hermes"
DEFAULT_EXTENSION = ".hermes"
DEFAULT_MAX_WORKERS = 4

PLACEHOLDER_POLICY_VAR = "HERMES_PLACEHOLDER_POLICY"
MAX_WORKERS_VAR = "HERMES_MAX_WORKERS"


class PlaceholderPolicy(StrEnum):
    """What to do with a ``{{KEY}}`` whose key is not in the active environment."""

    REPORT = "report"  # error diagnostic, placeholder text kept
    PASSTHROUGH = "passthrough"  # placeholder text kept silently


@dataclass(frozen=True)
class HermesConfig:
    """Loader configuration."""

    placeholder_policy: PlaceholderPolicy = PlaceholderPolicy.REPORT
    max_workers: int = DEFAULT_MAX_WORKERS
    root_file: str = DEFAULT_ROOT_FILE
    extension: str = DEFAULT_EXTENSION


def _parse_policy(value: object, default: PlaceholderPolicy) -> PlaceholderPolicy:
    if value is None:
        return default
    normalized = str(value).lower().strip()
    try:
        return PlaceholderPolicy(normalized)
    except ValueError:
        logger.warning(
            "Unknown placeholder policy '%s'. Valid values: %s. Using '%s'.",
            value,
            ", ".join(p.value for p in PlaceholderPolicy),
            default.value,
        )
        return default


def _parse_workers(value: object, default: int) -> int:
    if value is None:
        return default
    try:
        workers = int(str(value))
    except ValueError:
        workers = 0
    if workers < 1:
        logger.warning("Invalid max_workers '%s'. Using %d.", value, default)
        return default
    return workers


def _parse_name(value: object, setting: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        logger.warning("Invalid %s '%s'. Using '%s'.", setting, value, default)
        return default
    return value


def load_config(path: Path) -> HermesConfig:
    """
    Load loader configuration from a hermes.toml file.

    Args:
        path: Path to hermes.toml

    Returns:
        Parsed HermesConfig (defaults for anything not set)
    """
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    loader = data.get("loader", {})
    if not isinstance(loader, dict):
        logger.warning("Ignoring [loader] in %s: expected a table", path)
        loader = {}

    return HermesConfig(
        placeholder_policy=_parse_policy(
            loader.get("placeholder_policy"), PlaceholderPolicy.REPORT
        ),
        max_workers=_parse_workers(loader.get("max_workers"), DEFAULT_MAX_WORKERS),
        root_file=_parse_name(loader.get("root_file"), "root_file", DEFAULT_ROOT_FILE),
        extension=_parse_name(loader.get("extension"), "extension", DEFAULT_EXTENSION),
    )


def apply_env_overrides(config: HermesConfig) -> HermesConfig:
    """
    Apply HERMES_* environment variable overrides.

    Explicit environment settings take precedence over hermes.toml.
    """
    policy = _parse_policy(os.environ.get(PLACEHOLDER_POLICY_VAR), config.placeholder_policy)
    workers = _parse_workers(os.environ.get(MAX_WORKERS_VAR), config.max_workers)
    return HermesConfig(
        placeholder_policy=policy,
        max_workers=workers,
        root_file=config.root_file,
        extension=config.extension,
    )


def resolve_config(collection_dir: Path) -> HermesConfig:
    """
    Determine the configuration for a collection directory.

    Resolution order:
    1. HERMES_* environment variables
    2. hermes.toml in the collection directory
    3. Defaults
    """
    config_path = collection_dir / CONFIG_FILENAME
    if config_path.is_file():
        try:
            config = load_config(config_path)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Could not read %s: %s. Using defaults.", config_path, e)
            config = HermesConfig()
    else:
        config = HermesConfig()
    return apply_env_overrides(config)
