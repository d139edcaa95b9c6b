from __future__ import annotations

"""Value objects describing the editing rules derived from a schema."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

__all__ = ["ContentClass", "AttributeRule", "ElementRule"]


class ContentClass(str, Enum):
    """How an element's textual content should be treated."""

    TEXT = "text"
    BINARY = "binary"
    STRUCTURED = "structured"


@dataclass(frozen=True)
class AttributeRule:
    """A declared attribute of an element type.

    Attributes
    ----------
    name
        Attribute name (local name for ``ref=`` declarations).
    use
        ``"required"``, ``"optional"`` or ``"prohibited"``.
    default
        Declared default value, if any.
    fixed
        Declared fixed value, if any. Takes priority over ``default``.
    type_name
        Declared simple type, if any.
    """

    name: str
    use: str = "optional"
    default: Optional[str] = None
    fixed: Optional[str] = None
    type_name: Optional[str] = None

    @property
    def required(self) -> bool:
        return self.use == "required"

    def initial_value(self) -> Optional[str]:
        """Return the value a new element starts with, or None to omit it."""
        if self.fixed is not None:
            return self.fixed
        if self.default is not None:
            return self.default
        if self.required:
            return ""
        return None


@dataclass(frozen=True)
class ElementRule:
    """Structural rules for one element type."""

    name: str
    is_container: bool = False
    allowed_children: Tuple[str, ...] = ()
    attributes: Dict[str, AttributeRule] = field(default_factory=dict)
    content_type: str = "xs:string"
    content: ContentClass = ContentClass.TEXT
    default_text: Optional[str] = None
    type_name: Optional[str] = None
