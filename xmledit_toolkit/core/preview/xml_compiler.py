from __future__ import annotations

"""Utilities for on-the-fly SVG visualization of document fragments.

This module is **read-only** and has *no* GUI dependencies.  It relies only on
``lxml`` so that it can be reused in tests, CLI tools or a web front end.
"""

import copy
from typing import Optional

from lxml import etree as ET  # type: ignore

__all__ = [
    "get_raw_node_xml",
    "render_svg",
]


# ---------------------------------------------------------------------------
# RAW node extractor
# ---------------------------------------------------------------------------


def get_raw_node_xml(root: ET._Element, identity: str, *, identity_attribute: str = "name",
                     pretty: bool = True) -> Optional[str]:
    """Return the XML of the element holding *identity* (None if absent)."""
    if not identity:
        return None
    for el in root.iter(tag=ET.Element):
        if el.get(identity_attribute) == identity:
            return ET.tostring(el, pretty_print=pretty, encoding="unicode", with_tail=False)
    return None


# ---------------------------------------------------------------------------
# SVG renderer
# ---------------------------------------------------------------------------


def render_svg(element: ET._Element, transform: ET.XSLT, *, identity_attribute: str = "name") -> str:
    """Transform *element* (as its own document) with *transform*.

    The element is copied so the stylesheet sees the subtree as a standalone
    document and cannot reach the rest of the live tree.

    Raises
    ------
    lxml.etree.XSLTApplyError
        If the stylesheet fails while running.
    """
    node = copy.deepcopy(element)
    node.tail = None
    result = transform(
        ET.ElementTree(node),
        **{"identity-attribute": ET.XSLT.strparam(identity_attribute)},
    )
    if result.getroot() is None:
        return str(result)
    return ET.tostring(result, pretty_print=True, encoding="unicode")
