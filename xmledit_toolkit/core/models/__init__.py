from __future__ import annotations

"""Shared data structures used across the editing core.

This package exposes dataclasses and value objects used by services and other
core layers. It is intentionally free of UI / I/O code so that the contained
objects can be reused in any context (unit-tests, CLI, GUI, etc.).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from lxml import etree as ET

from .schema_rules import AttributeRule, ContentClass, ElementRule

__all__ = ["DocumentContext", "AttributeRule", "ContentClass", "ElementRule"]


@dataclass
class DocumentContext:
    """In-memory state of the document being edited.

    Attributes
    ----------
    tree
        Parsed document (lxml ElementTree), or None before the first load.
    source_path
        File the document was loaded from or last saved to.
    dirty
        True when the tree holds edits not yet written to disk.
    metadata
        Arbitrary key/value pairs (load timestamp, assigned identities, ...).
    """

    tree: Optional[ET._ElementTree] = None
    source_path: Optional[Path] = None
    dirty: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def root(self) -> Optional[ET._Element]:
        return self.tree.getroot() if self.tree is not None else None
