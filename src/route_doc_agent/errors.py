"""Error hierarchy for route-doc-agent.

Every failure stops the run before the target document is written:

    RouteDocError
    ├── ResolutionError      handler route not found / ambiguous
    │   └── SourceError      handler source unreadable or unparsable
    ├── SynthesisError       outcome or field type cannot be classified
    └── DocumentError
        ├── DocumentCorrupt      existing document is malformed
        ├── SchemaNameConflict   shared shape name taken by another structure
        └── InvalidTarget        target path outside the documentation root
"""

from typing import Any


class RouteDocError(Exception):
    """Base class for all route-doc-agent errors."""

    exit_code = 1

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ResolutionError(RouteDocError):
    """The routing declaration for a handler could not be determined."""

    exit_code = 3

    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"

    def __init__(
        self,
        message: str,
        kind: str = NOT_FOUND,
        candidates: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.kind = kind
        self.candidates = candidates or []


class SourceError(ResolutionError):
    """A handler source file could not be read or parsed."""


class SynthesisError(RouteDocError):
    """A handler construct could not be turned into operation metadata."""

    exit_code = 4

    def __init__(self, message: str, construct: str = "", context: dict[str, Any] | None = None):
        ctx = context or {}
        if construct:
            ctx["construct"] = construct
        super().__init__(message, ctx)
        self.construct = construct


class DocumentError(RouteDocError):
    """The target document cannot be merged or written."""

    exit_code = 5


class DocumentCorrupt(DocumentError):
    """The existing document is malformed."""


class SchemaNameConflict(DocumentError):
    """A shared shape name already exists with a different structure."""

    def __init__(self, name: str, context: dict[str, Any] | None = None):
        super().__init__(
            f"Shared schema '{name}' already exists with a different structure",
            context,
        )
        self.name = name


class InvalidTarget(DocumentError):
    """The target document path is not usable."""
