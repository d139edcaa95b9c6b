from __future__ import annotations

"""Read-only view models for tree and edit-form presenters.

Views hold identity strings only; they are rebuilt from the current document
after every refresh and never keep element references.
"""

from dataclasses import dataclass, field
import logging
from typing import List, Optional, Tuple

from lxml import etree as ET  # type: ignore

from xmledit_toolkit.core.document import DocumentModel
from xmledit_toolkit.core.utils import element_label, local_tag

__all__ = [
    "OutlineNode",
    "AttributeRow",
    "NodeEditModel",
    "build_outline",
    "build_edit_model",
]

logger = logging.getLogger(__name__)


@dataclass
class OutlineNode:
    identity: Optional[str]
    tag: str
    label: str
    children: List["OutlineNode"] = field(default_factory=list)

    def walk(self):
        """Yield this node and its descendants in document order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class AttributeRow:
    """One editable field of the edit form.

    ``is_content`` marks the row bound to the element's text (the content
    key); ``binary`` marks a content row holding encoded binary data.
    """

    name: str
    value: str
    required: bool = False
    is_content: bool = False
    binary: bool = False


@dataclass(frozen=True)
class NodeEditModel:
    identity: str
    tag: str
    rows: Tuple[AttributeRow, ...]
    content: str
    children: Tuple[Tuple[str, str], ...]
    allowed_child_types: Tuple[str, ...]
    is_container: bool
    is_root: bool

    def row(self, name: str) -> Optional[AttributeRow]:
        for row in self.rows:
            if row.name == name:
                return row
        return None


def build_outline(root: Optional[ET._Element], identity_attribute: str = "name") -> Optional[OutlineNode]:
    """Return the element hierarchy under *root* labelled ``Tag (identity)``."""
    if root is None:
        return None

    def _node(el: ET._Element) -> OutlineNode:
        return OutlineNode(
            identity=el.get(identity_attribute),
            tag=local_tag(el),
            label=element_label(el, identity_attribute),
            children=[_node(child) for child in el.iterchildren(tag=ET.Element)],
        )

    return _node(root)


def _skip_attribute(name: str) -> bool:
    return name.startswith("xmlns") or name == "id"


def build_edit_model(document: DocumentModel, identity: str) -> Optional[NodeEditModel]:
    """Return the edit form model of the element holding *identity*.

    Rows are the union of the element's attributes and the schema's declared
    ones, sorted by name; ``xmlns*`` and ``id`` are not shown.  The content
    row is included for binary elements and for elements with text.
    """
    el = document.find(identity)
    if el is None:
        logger.debug("ViewModel: element not found identity=%s", identity)
        return None

    introspector = document.introspector
    tag = local_tag(el)
    constraints = introspector.attribute_constraints(tag)
    binary = introspector.is_binary(tag)
    content = (el.text or "").strip()
    content_key = document.content_key

    values = {ET.QName(name).localname: value for name, value in el.attrib.items()}
    if binary or content:
        values.setdefault(content_key, content)

    rows = []
    for name in sorted(set(values) | set(constraints)):
        if _skip_attribute(name):
            continue
        is_content = name == content_key
        rows.append(AttributeRow(
            name=name,
            value=content if is_content else values.get(name, ""),
            required=constraints.get(name) == "required",
            is_content=is_content,
            binary=binary and is_content,
        ))

    children = tuple(
        (child.get(document.addressing.identity_attribute, ""), local_tag(child))
        for child in el.iterchildren(tag=ET.Element)
    )
    return NodeEditModel(
        identity=identity,
        tag=tag,
        rows=tuple(rows),
        content=content,
        children=children,
        allowed_child_types=introspector.allowed_children(tag),
        is_container=introspector.is_container(tag),
        is_root=el.getparent() is None,
    )
