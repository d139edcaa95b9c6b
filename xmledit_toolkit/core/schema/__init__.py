from __future__ import annotations

"""Schema introspection: XSD source loading and editing-hint queries."""

from .introspector import SchemaIntrospector, SchemaModel, load_schema  # noqa: F401
from .loader import discover_schema_files  # noqa: F401

__all__: list[str] = [
    "SchemaIntrospector",
    "SchemaModel",
    "load_schema",
    "discover_schema_files",
]
