from __future__ import annotations

"""Exception classes for the editing core.

Schema and document errors are reported to callers; protocol errors are
logged by the interpreter and the offending request is dropped.  An
:class:`AddressingViolation` signals an internal-consistency bug and is never
expected during normal operation.
"""

from typing import Any, Dict, Optional, Sequence, Union
from pathlib import Path

__all__ = [
    "EditorError",
    "SchemaError",
    "SchemaUnreadableError",
    "SchemaMalformedError",
    "DocumentParseError",
    "AddressingViolation",
    "ProtocolError",
]


class EditorError(Exception):
    """Base exception for all editing-core errors."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class SchemaError(EditorError):
    """Raised when the schema source set cannot be turned into a model.

    Unresolved type references inside an otherwise valid schema are not
    errors; they are logged and treated as "no declared children".
    """

    def __init__(self, message: str, source: Optional[Union[str, Path]] = None,
                 cause: Optional[BaseException] = None) -> None:
        super().__init__(message, cause)
        self.source = str(source) if source is not None else None

    def __str__(self) -> str:
        if self.source:
            return f"[Schema: {self.source}] {super().__str__()}"
        return super().__str__()


class SchemaUnreadableError(SchemaError):
    """Raised when no schema source can be found or read."""
    pass


class SchemaMalformedError(SchemaError):
    """Raised when a schema source is not well-formed or fails compilation."""

    def __init__(self, message: str, source: Optional[Union[str, Path]] = None,
                 errors: Optional[Sequence[str]] = None,
                 cause: Optional[BaseException] = None) -> None:
        super().__init__(message, source, cause)
        self.errors = list(errors or [])


class DocumentParseError(EditorError):
    """Raised when document text cannot be parsed.

    The load is abandoned and the previously loaded document is kept.
    """

    def __init__(self, message: str, source: Optional[Union[str, Path]] = None,
                 line: Optional[int] = None, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, cause)
        self.source = str(source) if source is not None else None
        self.line = line

    def __str__(self) -> str:
        location = self.source or "<text>"
        if self.line:
            location = f"{location}:{self.line}"
        return f"{location}: {super().__str__()}"


class AddressingViolation(EditorError):
    """Raised when two elements share an identity value."""

    def __init__(self, duplicates: Dict[str, int]) -> None:
        self.duplicates = dict(duplicates)
        listing = ", ".join(f"{value!r} x{count}" for value, count in sorted(self.duplicates.items()))
        super().__init__(f"Duplicate identity values: {listing}")


class ProtocolError(EditorError):
    """Raised when an edit request is malformed or names an unknown action."""

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload
