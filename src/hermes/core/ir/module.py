"""
File-level IR types for Hermes.

This module contains the parse result for a single .hermes file, the unit
of work of the discovery phase.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .blocks import Block
from .collection import FileState
from .diagnostics import Diagnostic


class ParsedFile(BaseModel):
    """
    Parse result for one file.

    Attributes:
        path: Absolute path of the file
        state: PARSED on success, FAILED when lexing or parsing failed
        blocks: Top-level blocks (empty when FAILED)
        env_files: Contents of dotenv files named by environment.file blocks,
            keyed by resolved path
        diagnostics: Problems found in this file
    """

    path: Path
    state: FileState = FileState.DISCOVERED
    blocks: list[Block] = Field(default_factory=list)
    env_files: dict[Path, dict[str, str]] = Field(default_factory=dict)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def failed(self) -> bool:
        return self.state == FileState.FAILED
