"""Source location tracking for IR nodes.

Records the file, line, and column range where a Hermes construct was
defined, enabling source-mapped diagnostics.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class SourceSpan(BaseModel):
    """Source range where a block was defined.

    Attributes:
        file: Path to the .hermes file
        line: 1-indexed line of the first token
        column: 1-indexed column of the first token
        end_line: 1-indexed line of the closing brace
        end_column: 1-indexed column of the closing brace
    """

    file: Path
    line: int
    column: int
    end_line: int
    end_column: int

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"
