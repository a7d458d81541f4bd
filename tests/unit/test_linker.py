"""Tests for collection linking: symbols, environments, requests, placeholders."""

from pathlib import Path

import pytest

from hermes.core import HermesConfig, PlaceholderPolicy, ir
from hermes.core.linker_impl import (
    SELF_ENVIRONMENTS,
    SELF_REQUESTS,
    build_symbol_table,
    find_collection_root,
)
from hermes.core.parser import parse_text
from hermes.core.project import load_collection

ROOT = Path("/virtual/collection.hermes")


def parsed(text: str, path: Path = ROOT) -> ir.ParsedFile:
    result = parse_text(text, path)
    assert not result.failed, result.diagnostics
    return result


def kinds(diagnostics: list[ir.Diagnostic]) -> list[ir.DiagnosticKind]:
    return [d.kind for d in diagnostics]


class TestSymbolTable:
    """Symbol registration across files."""

    def test_registers_identified_blocks(self):
        """Every identified top-level block is registered with its source."""
        other = Path("/virtual/other.hermes")
        symbols, diagnostics = build_symbol_table(
            [parsed("request::a { }"), parsed("headers::h { }", other)]
        )
        assert diagnostics == []
        assert set(symbols.blocks) == {"a", "h"}
        assert symbols.symbol_sources["h"] == other

    def test_duplicate_first_wins(self):
        """Duplicates are reported and the earliest definition is kept."""
        first = parsed('headers::h { A 1 "first" }')
        second = parsed('headers::h { A 1 "second" }', Path("/virtual/b.hermes"))
        symbols, diagnostics = build_symbol_table([first, second])
        assert kinds(diagnostics) == [ir.DiagnosticKind.DUPLICATE_IDENTIFIER]
        assert diagnostics[0].file == Path("/virtual/b.hermes")
        assert symbols.blocks["h"].fields[0].value.text == "first"

    def test_reserved_prefix_is_rejected(self):
        """self-prefixed identifiers are reported and never registered."""
        symbols, diagnostics = build_symbol_table(
            [parsed("request::r { }\nheaders::self-requests { }")]
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.RESERVED_IDENTIFIER_MISUSE]
        assert "self-requests" not in symbols.blocks
        resolved = symbols.resolve(SELF_REQUESTS)
        assert [b.identifier for b in resolved] == ["r"]

    def test_reserved_prefix_on_inline_block(self):
        """An inline block cannot take a self-prefixed identifier either."""
        symbols, diagnostics = build_symbol_table(
            [parsed('request::r { headers headers::self-requests { A 1 "x" } }')]
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.RESERVED_IDENTIFIER_MISUSE]
        assert diagnostics[0].line == 1
        assert set(symbols.blocks) == {"r"}
        assert [b.identifier for b in symbols.resolve(SELF_REQUESTS)] == ["r"]

    def test_inline_identifiers_are_not_registered(self):
        """Named inline blocks stay out of the symbol table without a diagnostic."""
        symbols, diagnostics = build_symbol_table(
            [parsed('request::r { headers headers::local { A 1 "x" } }')]
        )
        assert diagnostics == []
        assert symbols.resolve("local") is None

    def test_self_aggregates_in_discovery_order(self):
        """The self aggregates list blocks in file and source order."""
        a = parsed("environment::e1 { }\nrequest::r1 { }\nrequest { }")
        b = parsed("environment { }\nrequest::r2 { }", Path("/virtual/b.hermes"))
        symbols, _ = build_symbol_table([a, b])
        assert [r.identifier for r in symbols.resolve(SELF_REQUESTS)] == ["r1", None, "r2"]
        assert [e.identifier for e in symbols.resolve(SELF_ENVIRONMENTS)] == ["e1", None]

    def test_failed_files_are_skipped(self):
        """Blocks of failed files never reach the symbol table."""
        failed = parse_text("request::x {", Path("/virtual/bad.hermes"))
        symbols, _ = build_symbol_table([failed])
        assert symbols.resolve("x") is None


class TestCollectionRoot:
    """Placement of the collection block."""

    def test_root_starts_with_collection(self):
        """The collection block heading the root file is found."""
        collection, diagnostics = find_collection_root(
            [parsed('collection { name "x" }\nrequest { }')], ROOT
        )
        assert collection is not None
        assert diagnostics == []

    def test_root_must_start_with_collection(self):
        """Anything before the collection block is a violation."""
        collection, diagnostics = find_collection_root(
            [parsed("request { }\ncollection { }")], ROOT
        )
        assert collection is None
        assert kinds(diagnostics) == [ir.DiagnosticKind.COLLECTION_ROOT_VIOLATION] * 2

    def test_collection_in_other_file(self):
        """Collection blocks outside the root file are ignored and reported."""
        other = parsed("collection { }", Path("/virtual/other.hermes"))
        collection, diagnostics = find_collection_root([parsed("collection { }"), other], ROOT)
        assert collection is not None
        assert kinds(diagnostics) == [ir.DiagnosticKind.COLLECTION_ROOT_VIOLATION]
        assert diagnostics[0].file == Path("/virtual/other.hermes")


class TestEnvironmentLayering:
    """Merging environments into the active mapping."""

    def test_last_wins(self, load):
        """A later environment overrides an earlier one key by key."""
        model, diagnostics = load(
            {
                "collection.hermes": (
                    'collection { environment { K 1 "a" J 1 "j" } environment { K 1 "b" } }'
                )
            }
        )
        assert diagnostics == []
        assert model.active_environment == {"K": "b", "J": "j"}

    def test_disabled_entries_are_excluded(self, load):
        """Disabled entries never reach the active mapping."""
        model, _ = load(
            {
                "collection.hermes": (
                    'collection { environment { A 0 "x" B 1 "y" } }'
                )
            }
        )
        assert model.active_environment == {"B": "y"}

    def test_later_disabled_entry_removes_key(self, load):
        """An entry disabled by a later environment is left out."""
        model, _ = load(
            {
                "collection.hermes": (
                    'collection { environment { A 1 "x" } environment { A 0 "y" } }'
                )
            }
        )
        assert model.active_environment == {}

    def test_disabled_environment_field_is_skipped(self, load):
        """An environment field with state 0 contributes nothing."""
        model, _ = load(
            {
                "collection.hermes": (
                    "collection { environment 1 base environment 0 prod }\n"
                    'environment::base { HOST 1 "dev" }\n'
                    'environment::prod { HOST 1 "prod" }\n'
                )
            }
        )
        assert model.active_environment == {"HOST": "dev"}
        assert model.get_environment("base").active
        assert not model.get_environment("prod").active

    def test_self_environments(self, load):
        """self-environments layers every environment in discovery order."""
        model, _ = load(
            {
                "collection.hermes": (
                    "collection { environment self-environments }\n"
                    'environment::a { X 1 "a" Y 1 "a" }\n'
                    'environment::b { X 1 "b" }\n'
                )
            }
        )
        assert model.active_environment == {"X": "b", "Y": "a"}
        assert all(e.active for e in model.environments)

    def test_environment_file(self, load):
        """environment.file entries are all enabled."""
        model, diagnostics = load(
            {
                "collection.hermes": (
                    'collection { environment { HOST 0 "x" } environment dev }\n'
                    'environment.file::dev { path "envs/dev.env" }\n'
                ),
                "envs/dev.env": "HOST=dev.test\n# comment\nTOKEN='s3cret'\n",
            }
        )
        assert diagnostics == []
        assert model.active_environment == {"HOST": "dev.test", "TOKEN": "s3cret"}
        environment = model.get_environment("dev")
        assert environment.from_file
        assert environment.entries == {"HOST": "dev.test", "TOKEN": "s3cret"}

    def test_environment_must_be_environment_block(self, load):
        """Layering a block of another type is a type mismatch."""
        model, diagnostics = load(
            {"collection.hermes": 'collection { environment h }\nheaders::h { A 1 "x" }'}
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.TYPE_MISMATCH]
        assert model.active_environment == {}

    def test_unresolved_environment(self, load):
        """An unknown environment name is an unresolved reference."""
        _, diagnostics = load({"collection.hermes": "collection { environment nowhere }"})
        assert kinds(diagnostics) == [ir.DiagnosticKind.UNRESOLVED_REFERENCE]
        assert "nowhere" in diagnostics[0].message

    def test_inline_environment_listed(self, load):
        """Inline environments are listed as active."""
        model, _ = load({"collection.hermes": 'collection { environment { A 1 "x" } }'})
        (environment,) = model.environments
        assert environment.name == "<inline>"
        assert environment.active


class TestRequests:
    """Request resolution."""

    def test_demo_scenario(self, demo_collection: Path):
        """The demo collection resolves fully without diagnostics."""
        model, diagnostics = load_collection(demo_collection, HermesConfig())
        assert diagnostics == []
        assert model.name == "Demo"
        (request,) = model.requests
        assert request.url == "https://api.test/x"
        assert request.headers == {"Authorization": "Bearer t"}
        assert request.method == ir.HttpMethod.GET
        assert request.name == "r1"

    def test_missing_headers_block(self, load):
        """An unresolved headers reference is reported once and contributes nothing."""
        model, diagnostics = load(
            {"collection.hermes": 'collection { }\nrequest::r { url "x" headers missing-block }'}
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.UNRESOLVED_REFERENCE]
        assert "missing-block" in diagnostics[0].message
        assert model.requests[0].headers == {}

    def test_raw_json_body(self, load):
        """Raw JSON bodies keep their text verbatim."""
        model, diagnostics = load(
            {
                "collection.hermes": (
                    'collection { }\nrequest::r { body body.json { value 1 r#"{"a":1}"# } }'
                )
            }
        )
        assert diagnostics == []
        body = model.requests[0].body
        assert body.kind == ir.BodyKind.JSON
        assert body.content == '{"a":1}'

    def test_disabled_fields_are_excluded(self, load):
        """Disabled headers and queries never appear, whatever their order."""
        model, _ = load(
            {
                "collection.hermes": (
                    "collection { }\n"
                    'request::r { headers { A 0 "x" B 1 "y" } queries { q 1 "1" p 0 "2" } }\n'
                )
            }
        )
        request = model.requests[0]
        assert request.headers == {"B": "y"}
        assert request.queries == {"q": "1"}

    def test_headers_merge_in_order(self, load):
        """Several headers fields merge, later keys winning."""
        model, _ = load(
            {
                "collection.hermes": (
                    "collection { }\n"
                    'headers::common { Accept 1 "*/*" Auth 1 "none" }\n'
                    'request::r { headers common headers { Auth 1 "token" } }\n'
                )
            }
        )
        assert model.requests[0].headers == {"Accept": "*/*", "Auth": "token"}

    def test_type_mismatch(self, load):
        """A headers field pointing at a body block is a type mismatch."""
        model, diagnostics = load(
            {
                "collection.hermes": (
                    'collection { }\nbody.text::b { hi }\nrequest::r { headers b }'
                )
            }
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.TYPE_MISMATCH]
        assert model.requests[0].headers == {}

    def test_self_requests_is_not_headers(self, load):
        """The request aggregate cannot be used as headers."""
        _, diagnostics = load(
            {"collection.hermes": "collection { }\nrequest::r { headers self-requests }"}
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.TYPE_MISMATCH]

    def test_reserved_identifier_still_resolves_aggregate(self, load):
        """A user block named self-requests does not shadow the aggregate."""
        model, diagnostics = load(
            {
                "collection.hermes": (
                    "collection { }\n"
                    'headers::self-requests { A 1 "x" }\n'
                    "request::r { headers self-requests }\n"
                )
            }
        )
        assert kinds(diagnostics) == [
            ir.DiagnosticKind.RESERVED_IDENTIFIER_MISUSE,
            ir.DiagnosticKind.TYPE_MISMATCH,
        ]
        assert model.requests[0].headers == {}

    def test_method_and_name(self, load):
        """Method is case-insensitive, name overrides the identifier."""
        model, diagnostics = load(
            {
                "collection.hermes": (
                    "collection { }\n"
                    'request::r1 { name "Create user" method post }\n'
                    'request { method "Delete" }\n'
                )
            }
        )
        assert diagnostics == []
        first, second = model.requests
        assert (first.name, first.method) == ("Create user", ir.HttpMethod.POST)
        assert (second.name, second.method) == ("Untitled Request", ir.HttpMethod.DELETE)

    def test_invalid_method(self, load):
        """Unknown methods are reported and GET is kept."""
        model, diagnostics = load(
            {"collection.hermes": 'collection { }\nrequest { method "FETCH" }'}
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.INVALID_VALUE]
        assert model.requests[0].method == ir.HttpMethod.GET

    def test_unknown_fields_warn(self, load):
        """Unknown request and collection fields are warnings."""
        model, diagnostics = load(
            {"collection.hermes": 'collection { author "me" }\nrequest { timeout "5" }'}
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.UNKNOWN_FIELD] * 2
        assert not model.has_errors

    def test_last_enabled_body_wins(self, load):
        """With several bodies the last enabled one is used."""
        model, _ = load(
            {
                "collection.hermes": (
                    "collection { }\n"
                    "request { body body.text { first } body 0 body.text { second } "
                    "body body.text { third } body 0 body.text { fourth } }\n"
                )
            }
        )
        assert model.requests[0].body.content == " third "

    def test_body_without_sub_type_is_text(self, load):
        """A body block with no sub-type is a text body."""
        model, _ = load(
            {"collection.hermes": 'collection { }\nrequest { body { value 1 "plain" } }'}
        )
        assert model.requests[0].body.kind == ir.BodyKind.TEXT
        assert model.requests[0].body.content == "plain"

    def test_form_body(self, load):
        """Form bodies collect their enabled entries."""
        model, _ = load(
            {
                "collection.hermes": (
                    'collection { environment { U 1 "me" } }\n'
                    'request { body body.form-urlencoded { user 1 "{{U}}" pass 0 "x" } }\n'
                )
            }
        )
        body = model.requests[0].body
        assert body.kind == ir.BodyKind.FORM_URLENCODED
        assert body.form == {"user": "me"}

    def test_multipart_body(self, load):
        """Multipart entries take their kind from the name prefix."""
        model, diagnostics = load(
            {
                "collection.hermes": (
                    "collection { }\n"
                    "request { body body.multipart-form { "
                    'text-title 1 "hello" file-upload 1 "./a.png" other 1 "x" } }\n'
                )
            }
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.INVALID_VALUE]
        parts = model.requests[0].body.parts
        assert [(p.name, p.kind, p.value) for p in parts] == [
            ("title", ir.PartKind.TEXT, "hello"),
            ("upload", ir.PartKind.FILE, "./a.png"),
        ]

    def test_folders(self, load):
        """Requests are grouped by their directory."""
        model, _ = load(
            {
                "collection.hermes": 'collection { include "." include "users" }\nrequest::a { }',
                "users/list.hermes": "request::b { }",
            }
        )
        assert {k: [r.identifier for r in v] for k, v in model.folders().items()} == {
            "": ["a"],
            "users": ["b"],
        }


class TestPlaceholders:
    """{{KEY}} substitution."""

    def test_substitutes_everywhere(self, load):
        """URL, headers, queries and body content are all substituted."""
        model, diagnostics = load(
            {
                "collection.hermes": (
                    'collection { environment { H 1 "h.test" T 1 "tok" N 1 "5" } }\n'
                    'request { url "https://{{H}}/" headers { Auth 1 "Bearer {{ T }}" } '
                    'queries { n 1 "{{N}}" } body body.json { value 1 r#"{"n": {{N}}}"# } }\n'
                )
            }
        )
        assert diagnostics == []
        request = model.requests[0]
        assert request.url == "https://h.test/"
        assert request.headers == {"Auth": "Bearer tok"}
        assert request.queries == {"n": "5"}
        assert request.body.content == '{"n": 5}'

    def test_unresolved_placeholder_reported(self, load):
        """A missing key is reported and the text left in place."""
        model, diagnostics = load(
            {"collection.hermes": 'collection { }\nrequest { url "https://{{HOST}}/x" }'}
        )
        assert kinds(diagnostics) == [ir.DiagnosticKind.UNRESOLVED_PLACEHOLDER]
        assert "HOST" in diagnostics[0].message
        assert diagnostics[0].line == 2
        assert model.requests[0].url == "https://{{HOST}}/x"

    def test_passthrough_policy(self, load):
        """The passthrough policy leaves placeholders without a diagnostic."""
        model, diagnostics = load(
            {"collection.hermes": 'collection { }\nrequest { url "{{HOST}}" }'},
            HermesConfig(placeholder_policy=PlaceholderPolicy.PASSTHROUGH),
        )
        assert diagnostics == []
        assert model.requests[0].url == "{{HOST}}"

    def test_values_are_not_expanded_twice(self, load):
        """Substituted values are not scanned again."""
        model, _ = load(
            {
                "collection.hermes": (
                    'collection { environment { A 1 "{{B}}" B 1 "b" } }\n'
                    'request { url "{{A}}" }'
                )
            }
        )
        assert model.requests[0].url == "{{B}}"

    @pytest.mark.parametrize("text", ["{HOST}", "{{}}", "{{ }}"])
    def test_non_placeholders_untouched(self, load, text: str):
        """Text that is not a complete placeholder is left alone."""
        model, diagnostics = load(
            {"collection.hermes": f'collection {{ }}\nrequest {{ url "{text}" }}'}
        )
        assert diagnostics == []
        assert model.requests[0].url == text
