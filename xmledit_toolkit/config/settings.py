from __future__ import annotations

"""Typed view over the ``editor`` configuration section."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional

from .manager import ConfigManager

__all__ = ["EditorSettings", "DEFAULT_BINARY_TYPES"]

DEFAULT_BINARY_TYPES: FrozenSet[str] = frozenset(
    {"xs:base64Binary", "base64Binary", "ImageDataType", "PDFDataType"}
)


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_path(value: Any) -> Optional[Path]:
    if not value:
        return None
    return Path(str(value)).expanduser()


@dataclass(frozen=True)
class EditorSettings:
    """Editing rules used to wire an :class:`~xmledit_toolkit.core.session.EditorSession`.

    Attributes
    ----------
    identity_attribute
        Attribute holding each element's unique address.
    identity_prefix
        Prefix of generated identity values.
    content_key
        Pseudo-attribute name that targets an element's text content.
    binary_types
        Declared content type names treated as encoded binary data.
    compress_binary
        Whether binary payloads are gzip-compressed before base64 encoding.
    schema_directory
        Directory of XSD files loaded at start-up, if any.
    stylesheet
        Custom visualization stylesheet, if any.
    """

    identity_attribute: str = "name"
    identity_prefix: str = "synth"
    content_key: str = "value"
    binary_types: FrozenSet[str] = field(default_factory=lambda: DEFAULT_BINARY_TYPES)
    compress_binary: bool = True
    schema_directory: Optional[Path] = None
    stylesheet: Optional[Path] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EditorSettings":
        binary = data.get("binary_types")
        return cls(
            identity_attribute=str(data.get("identity_attribute") or "name"),
            identity_prefix=str(data.get("identity_prefix") or "synth"),
            content_key=str(data.get("content_key") or "value"),
            binary_types=frozenset(str(t) for t in binary) if binary else DEFAULT_BINARY_TYPES,
            compress_binary=_as_bool(data.get("compress_binary"), True),
            schema_directory=_as_path(data.get("schema_directory")),
            stylesheet=_as_path(data.get("stylesheet")),
        )

    @classmethod
    def from_config(cls, config: Optional[ConfigManager] = None) -> "EditorSettings":
        config = config or ConfigManager()
        return cls.from_mapping(config.get_editor_config())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity_attribute": self.identity_attribute,
            "identity_prefix": self.identity_prefix,
            "content_key": self.content_key,
            "binary_types": sorted(self.binary_types),
            "compress_binary": self.compress_binary,
            "schema_directory": str(self.schema_directory) if self.schema_directory else "",
            "stylesheet": str(self.stylesheet) if self.stylesheet else "",
        }
