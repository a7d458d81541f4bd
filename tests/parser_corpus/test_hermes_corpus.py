"""
Hermes corpus tests.

Every file under corpora/valid must parse cleanly, every file under
corpora/invalid must produce at least one error, and parsing must be
deterministic.
"""

from pathlib import Path

import pytest
from harness import parse_corpus_file

from hermes.core.parser import parse_text
from hermes.core.serializer import dump_blocks

CORPUS_DIR = Path(__file__).parent.parent / "corpora"


def get_valid_files() -> list[Path]:
    """Get all valid corpus files."""
    valid_dir = CORPUS_DIR / "valid"
    if not valid_dir.exists():
        return []
    return sorted(valid_dir.glob("*.hermes"))


def get_invalid_files() -> list[Path]:
    """Get all invalid corpus files."""
    invalid_dir = CORPUS_DIR / "invalid"
    if not invalid_dir.exists():
        return []
    return sorted(invalid_dir.glob("*.hermes"))


class TestValidCorpus:
    """Tests for valid corpus files."""

    @pytest.mark.corpus
    @pytest.mark.parametrize("hermes_file", get_valid_files(), ids=lambda p: p.stem)
    def test_valid_file_parses_without_errors(self, hermes_file: Path):
        """Valid files must parse without diagnostics."""
        result = parse_corpus_file(hermes_file)
        assert result["diagnostics"] == [], (
            f"Expected no diagnostics for valid file {hermes_file.name}, "
            f"got: {result['diagnostics']}"
        )
        assert result["state"] == "parsed"
        assert result["blocks"], f"Expected blocks for {hermes_file.name}"

    @pytest.mark.corpus
    @pytest.mark.parametrize("hermes_file", get_valid_files(), ids=lambda p: p.stem)
    def test_valid_file_formats_stably(self, hermes_file: Path):
        """Formatting a valid file and parsing it again gives the same blocks."""
        original = parse_corpus_file(hermes_file)
        formatted = dump_blocks(parse_text(hermes_file.read_text(), hermes_file).blocks)
        formatted_file = hermes_file.with_name(f"{hermes_file.stem}.formatted.hermes")
        reparsed = parse_text(formatted, formatted_file)

        assert reparsed.diagnostics == []
        assert dump_blocks(reparsed.blocks) == formatted
        assert len(reparsed.blocks) == len(original["blocks"])


class TestInvalidCorpus:
    """Tests for invalid corpus files."""

    @pytest.mark.corpus
    @pytest.mark.parametrize("hermes_file", get_invalid_files(), ids=lambda p: p.stem)
    def test_invalid_file_produces_errors(self, hermes_file: Path):
        """Invalid files must produce at least one located error."""
        result = parse_corpus_file(hermes_file)
        assert result["state"] == "failed"
        assert len(result["diagnostics"]) > 0, (
            f"Expected errors for invalid file {hermes_file.name}, got none"
        )
        assert all(d["line"] > 0 for d in result["diagnostics"])
        assert result["blocks"] == []


class TestCorpusDeterminism:
    """Tests for parsing determinism."""

    @pytest.mark.corpus
    @pytest.mark.parametrize(
        "hermes_file", get_valid_files() + get_invalid_files(), ids=lambda p: p.stem
    )
    def test_parsing_is_deterministic(self, hermes_file: Path):
        """Parsing the same file twice gives identical output."""
        first = parse_corpus_file(hermes_file, keep_locations=True)
        second = parse_corpus_file(hermes_file, keep_locations=True)
        assert first == second

    @pytest.mark.corpus
    def test_corpus_is_present(self, corpora_dir: Path):
        """Both halves of the corpus have files to run against."""
        assert sorted((corpora_dir / "valid").glob("*.hermes")) == get_valid_files()
        assert get_valid_files() and get_invalid_files()
