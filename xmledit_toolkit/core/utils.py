from __future__ import annotations

"""Simple reusable helper functions.

These helpers contain no GUI code; apart from :func:`save_xml_file` they are
side-effect free and can be used across all layers of the toolkit.
"""

import logging
from pathlib import Path
from typing import Union

from lxml import etree as ET

__all__ = [
    "local_tag",
    "is_valid_tag",
    "element_label",
    "xml_bytes",
    "save_xml_file",
]

logger = logging.getLogger(__name__)


def local_tag(el: ET._Element) -> str:
    """Return the tag of *el* without its namespace."""
    return ET.QName(el).localname


def is_valid_tag(name: str) -> bool:
    """Return True if *name* can be used as an element tag."""
    if not name or not isinstance(name, str):
        return False
    try:
        ET.Element(name)
    except ValueError:
        return False
    return True


def element_label(el: ET._Element, identity_attribute: str = "name") -> str:
    """Return the display label of *el*: ``Tag (identity)`` or just ``Tag``."""
    tag = local_tag(el)
    identity = el.get(identity_attribute)
    return f"{tag} ({identity})" if identity else tag


# ---------------------------------------------------------------------------
# XML convenience wrappers
# ---------------------------------------------------------------------------


def xml_bytes(node: Union[ET._ElementTree, ET._Element], *, pretty: bool = False,
              declaration: bool = True) -> bytes:
    """Serialise *node* as UTF-8 bytes.

    Passing the ElementTree rather than its root keeps top-level comments,
    processing instructions and the doctype.
    """
    return ET.tostring(
        node,
        pretty_print=pretty,
        xml_declaration=declaration,
        encoding="UTF-8",
    )


def save_xml_file(node: Union[ET._ElementTree, ET._Element], path: Union[str, Path], *,
                  pretty: bool = True) -> None:
    """Write *node* to *path* with an XML declaration.

    Parameters
    ----------
    node
        Document or root element to serialise.
    path
        Destination file path (opened in binary mode).
    pretty
        When *True* (default) lxml indents the output for readability.
    """
    data = xml_bytes(node, pretty=pretty)
    try:
        with open(path, "wb") as fh:
            fh.write(data)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("I/O: wrote XML pretty=%s path=%s bytes=%d", pretty, path, len(data))
    except OSError:
        # Caller context handles user feedback; file handler captures traceback
        logger.error("I/O FAIL: write XML path=%s", path, exc_info=True)
        raise
