"""
Resolved collection types for Hermes IR.

This module contains the CollectionModel, the fully linked output of a
load, and the resolved request/body/environment types it is made of.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .blocks import SubType
from .diagnostics import Diagnostic


DEFAULT_COLLECTION_NAME = "Untitled Collection"


class HttpMethod(str, Enum):
    """HTTP method a request is sent with."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    HEAD = "HEAD"


class BodyKind(str, Enum):
    """Kind of request body, mirroring the body sub-types."""

    JSON = "json"
    TEXT = "text"
    FORM_URLENCODED = "form-urlencoded"
    MULTIPART_FORM = "multipart-form"

    @classmethod
    def from_sub_type(cls, sub_type: SubType | None) -> BodyKind:
        if sub_type is None:
            return cls.TEXT
        return cls(sub_type.value)


class PartKind(str, Enum):
    """Multipart entry kind, taken from the ``text-``/``file-`` field prefix."""

    TEXT = "text"
    FILE = "file"


class MultipartPart(BaseModel):
    """One multipart form entry."""

    name: str
    kind: PartKind
    value: str

    model_config = ConfigDict(frozen=True)


class ResolvedBody(BaseModel):
    """
    Request body after reference resolution and substitution.

    Attributes:
        kind: Body kind
        content: Verbatim content for json/text bodies
        form: Enabled entries of a form-urlencoded body
        parts: Enabled entries of a multipart-form body
    """

    kind: BodyKind
    content: str | None = None
    form: dict[str, str] = Field(default_factory=dict)
    parts: list[MultipartPart] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ResolvedRequest(BaseModel):
    """
    A request ready to be handed to an HTTP executor.

    Attributes:
        name: Display name
        identifier: Block identifier (None for anonymous requests)
        method: HTTP method
        url: URL with placeholders substituted
        headers: Enabled headers, later declarations winning
        queries: Enabled query parameters, later declarations winning
        body: Resolved body, if any
        source_file: File the request block was defined in
        folder: Directory of source_file relative to the collection root
        line: Line of the request block
    """

    name: str
    identifier: str | None = None
    method: HttpMethod = HttpMethod.GET
    url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    queries: dict[str, str] = Field(default_factory=dict)
    body: ResolvedBody | None = None
    source_file: Path
    folder: str = ""
    line: int = 0

    model_config = ConfigDict(frozen=True)


class EnvironmentInfo(BaseModel):
    """
    A declared environment.

    Attributes:
        name: Identifier of the environment ("<inline>" for inline ones)
        entries: Enabled key/value pairs declared by this environment
        active: True when the collection layers this environment in
        from_file: True for environment.file blocks
        source_file: File the block was defined in
    """

    name: str
    entries: dict[str, str] = Field(default_factory=dict)
    active: bool = False
    from_file: bool = False
    source_file: Path | None = None

    model_config = ConfigDict(frozen=True)


class FileState(str, Enum):
    """Load state of a single file: Discovered -> Parsed -> Linked -> Resolved | Failed."""

    DISCOVERED = "discovered"
    PARSED = "parsed"
    LINKED = "linked"
    RESOLVED = "resolved"
    FAILED = "failed"


class SourceFileInfo(BaseModel):
    """Final load state of one file of the collection."""

    path: Path
    state: FileState

    model_config = ConfigDict(frozen=True)


class CollectionModel(BaseModel):
    """
    Complete, resolved collection.

    This is the root of the resolved IR and the only object that outlives a
    load. It is rebuilt wholesale on reload.

    Attributes:
        name: Collection name
        description: Optional description
        root: Path of the collection root file
        requests: Requests in discovery order
        environments: Declared environments in discovery order
        active_environment: Merged key/value mapping used for substitution
        files: Load state per file
        diagnostics: Everything reported while loading
    """

    name: str = DEFAULT_COLLECTION_NAME
    description: str | None = None
    root: Path
    requests: list[ResolvedRequest] = Field(default_factory=list)
    environments: list[EnvironmentInfo] = Field(default_factory=list)
    active_environment: dict[str, str] = Field(default_factory=dict)
    files: list[SourceFileInfo] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_empty(self) -> bool:
        return not self.requests

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)

    def get_request(self, identifier: str) -> ResolvedRequest | None:
        """Get request by identifier."""
        for request in self.requests:
            if request.identifier == identifier:
                return request
        return None

    def get_environment(self, name: str) -> EnvironmentInfo | None:
        """Get environment by name."""
        for environment in self.environments:
            if environment.name == name:
                return environment
        return None

    def folders(self) -> dict[str, list[ResolvedRequest]]:
        """Group requests by folder, preserving discovery order."""
        grouped: dict[str, list[ResolvedRequest]] = {}
        for request in self.requests:
            grouped.setdefault(request.folder, []).append(request)
        return grouped

    def requests_in_file(self, path: Path) -> list[ResolvedRequest]:
        """Get the requests defined in one source file."""
        return [r for r in self.requests if r.source_file == path]
