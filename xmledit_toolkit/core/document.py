from __future__ import annotations

"""Ownership layer around the parsed document tree.

:class:`DocumentModel` is the only component that holds lxml element
references.  Everything outside it addresses elements by identity string,
which is what makes the refresh cycle (serialize, re-parse, re-address)
safe: no stale reference can survive it.

Scope and guarantees:
- Expected failures (unknown identity, root deletion, invalid tag) return
  False/None and leave the tree untouched; they are logged, never raised.
- Parse failures raise :class:`DocumentParseError` and keep the previously
  loaded document.
- File I/O errors propagate to the caller.
"""

import copy
from datetime import datetime
import io
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Set, Tuple, Union

from lxml import etree as ET  # type: ignore

from xmledit_toolkit.core.addressing import AddressingScheme
from xmledit_toolkit.core.binary import decode_binary, encode_binary
from xmledit_toolkit.core.exceptions import DocumentParseError
from xmledit_toolkit.core.models import ContentClass, DocumentContext
from xmledit_toolkit.core.schema import SchemaIntrospector
from xmledit_toolkit.core.utils import is_valid_tag, local_tag, save_xml_file, xml_bytes

__all__ = ["DocumentModel"]

logger = logging.getLogger(__name__)

TextLike = Union[str, bytes]


def _make_parser() -> ET.XMLParser:
    # Blank text is dropped so pretty-printed output re-parses to the same tree
    return ET.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)


class DocumentModel:
    """Holds the document being edited and applies structural mutations.

    Parameters
    ----------
    introspector
        Source of default attributes and content classification.
    addressing
        Identity scheme used for lookup and for fresh identities.
    content_key
        Pseudo-attribute name that targets an element's text content.
    compress_binary
        Whether binary payloads are gzip-compressed before base64 encoding.
    """

    def __init__(self, introspector: SchemaIntrospector, addressing: AddressingScheme, *,
                 content_key: str = "value", compress_binary: bool = True) -> None:
        self._introspector = introspector
        self._addressing = addressing
        self._content_key = content_key
        self._compress_binary = compress_binary
        self._context = DocumentContext()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def context(self) -> DocumentContext:
        return self._context

    @property
    def root(self) -> Optional[ET._Element]:
        return self._context.root

    @property
    def is_loaded(self) -> bool:
        return self._context.tree is not None

    @property
    def source_path(self) -> Optional[Path]:
        return self._context.source_path

    @property
    def dirty(self) -> bool:
        return self._context.dirty

    @property
    def addressing(self) -> AddressingScheme:
        return self._addressing

    @property
    def introspector(self) -> SchemaIntrospector:
        return self._introspector

    @property
    def content_key(self) -> str:
        return self._content_key

    def identities(self) -> Set[str]:
        root = self.root
        return self._addressing.collect(root) if root is not None else set()

    def find(self, identity: str) -> Optional[ET._Element]:
        root = self.root
        if root is None:
            return None
        return self._addressing.find_by_identity(root, identity)

    # ------------------------------------------------------------------
    # Parsing and serialization
    # ------------------------------------------------------------------

    @staticmethod
    def parse(text: TextLike, source: Optional[Union[str, Path]] = None) -> ET._ElementTree:
        """Parse document text into an ElementTree.

        Raises
        ------
        DocumentParseError
            If the text is empty or not well-formed XML.
        """
        data = text.encode("utf-8") if isinstance(text, str) else text
        if not data or not data.strip():
            raise DocumentParseError("Document is empty", source)
        try:
            return ET.parse(io.BytesIO(data), _make_parser())
        except ET.XMLSyntaxError as exc:
            raise DocumentParseError(str(exc), source, getattr(exc, "lineno", None), cause=exc) from exc

    def serialize(self, pretty: bool = False) -> str:
        """Return the current document as text (empty string when nothing is loaded)."""
        if self._context.tree is None:
            return ""
        return xml_bytes(self._context.tree, pretty=pretty).decode("utf-8")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load_text(self, text: TextLike, source: Optional[Union[str, Path]] = None) -> List[str]:
        """Replace the current document with *text*.

        Returns the identities assigned to elements that lacked one.  On a
        parse error the current document is kept.
        """
        tree = self.parse(text, source)
        assigned = self._addressing.ensure_identities(tree.getroot())
        self._context = DocumentContext(
            tree=tree,
            source_path=Path(source) if source is not None else None,
            dirty=bool(assigned),
            metadata={
                "loaded_at": datetime.now().isoformat(timespec="seconds"),
                "assigned_identities": list(assigned),
            },
        )
        logger.info("Document: loaded root=<%s> elements=%d assigned=%d source=%s",
                    local_tag(tree.getroot()), len(self.identities()), len(assigned), source or "<text>")
        return assigned

    def load_file(self, path: Union[str, Path]) -> List[str]:
        """Load *path*; see :meth:`load_text`."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError:
            logger.error("I/O FAIL: read XML path=%s", path, exc_info=True)
            raise
        return self.load_text(data, path)

    def new_document(self, root_type: str) -> Optional[str]:
        """Start an empty document whose root is a new *root_type* element."""
        if not is_valid_tag(root_type):
            logger.warning("Document: invalid root type %r", root_type)
            return None
        root = ET.Element(root_type)
        identity = self._populate_new_element(root, root_type, set())
        self._context = DocumentContext(
            tree=ET.ElementTree(root),
            dirty=True,
            metadata={"loaded_at": datetime.now().isoformat(timespec="seconds")},
        )
        logger.info("Document: new root=<%s> identity=%s", root_type, identity)
        return identity

    def save_file(self, path: Optional[Union[str, Path]] = None, *, indent: bool = True) -> Path:
        """Write the document to *path* (default: where it came from).

        Raises
        ------
        ValueError
            If nothing is loaded or no destination is known.
        OSError
            If the file cannot be written.
        """
        if self._context.tree is None:
            raise ValueError("No document loaded")
        target = Path(path) if path is not None else self._context.source_path
        if target is None:
            raise ValueError("No destination path for document")
        save_xml_file(self._context.tree, target, pretty=indent)
        self._context.source_path = target
        self._context.dirty = False
        logger.info("Document: saved path=%s", target)
        return target

    def close(self) -> None:
        self._context = DocumentContext()

    def refresh(self) -> None:
        """Serialize, re-parse and re-address the document.

        Keeps the persisted text form and the in-memory tree identical after
        every batch of mutations.
        """
        if self._context.tree is None:
            return
        tree = self.parse(xml_bytes(self._context.tree), self._context.source_path)
        root = tree.getroot()
        self._addressing.ensure_identities(root)
        self._addressing.assert_unique(root)
        self._context.tree = tree

    def snapshot(self) -> Tuple[Optional[ET._ElementTree], bool]:
        """Return a detached copy of the tree and the dirty flag, for :meth:`restore`."""
        tree = self._context.tree
        return (copy.deepcopy(tree) if tree is not None else None), self._context.dirty

    def restore(self, snapshot: Tuple[Optional[ET._ElementTree], bool]) -> None:
        """Put back a state taken with :meth:`snapshot`."""
        tree, dirty = snapshot
        self._context.tree = tree
        self._context.dirty = dirty
        logger.warning("Document: state restored from snapshot")

    def validate(self) -> List[str]:
        """Return schema validation messages for the current document."""
        if self._context.tree is None:
            return []
        return self._introspector.validate(self._context.tree)

    # ------------------------------------------------------------------
    # Structural mutation
    # ------------------------------------------------------------------

    def add_child(self, parent_identity: str, new_type: str) -> Optional[str]:
        """Append a new *new_type* element under *parent_identity*.

        The element starts with the schema's default attributes, a fresh
        identity and, for text content with a declared default, that text.
        Returns the new identity, or None if the parent is unknown or the
        type is not a valid tag.
        """
        parent = self.find(parent_identity)
        if parent is None:
            logger.debug("Document: add_child parent_not_found parent=%s", parent_identity)
            return None
        if not is_valid_tag(new_type):
            logger.warning("Document: add_child invalid type %r", new_type)
            return None

        tag = new_type
        namespace = ET.QName(parent).namespace
        if namespace and not new_type.startswith("{"):
            tag = f"{{{namespace}}}{new_type}"
        child = ET.SubElement(parent, tag)
        identity = self._populate_new_element(child, ET.QName(child).localname, self.identities())
        self._context.dirty = True
        return identity

    def remove_by_identity(self, identity: str) -> bool:
        """Remove the element and its subtree; the root cannot be removed."""
        el = self.find(identity)
        if el is None:
            return False
        parent = el.getparent()
        if parent is None:
            return False
        if el.tail:
            previous = el.getprevious()
            if previous is not None:
                previous.tail = (previous.tail or "") + el.tail
            else:
                parent.text = (parent.text or "") + el.tail
        parent.remove(el)
        self._context.dirty = True
        return True

    def update_attributes(self, identity: str, attrs: Mapping[str, Any]) -> bool:
        """Apply *attrs* to the element.

        The content key sets the element's text (and an attribute of the
        same name when one exists).  The identity attribute only changes to
        a non-blank value not used elsewhere.  Any other key is set verbatim.
        """
        el = self.find(identity)
        if el is None:
            return False

        identity_attribute = self._addressing.identity_attribute
        for key, raw_value in attrs.items():
            value = "" if raw_value is None else str(raw_value)
            try:
                if key.lower() == self._content_key.lower():
                    el.text = value
                    if el.get(key) is not None:
                        el.set(key, value)
                elif key == identity_attribute:
                    if value == el.get(key):
                        continue
                    if not value.strip() or self.find(value) is not None:
                        logger.warning("Document: refused identity change %r -> %r", el.get(key), value)
                        continue
                    el.set(key, value)
                else:
                    el.set(key, value)
            except ValueError as exc:
                # lxml rejects invalid attribute names and non-XML characters
                logger.warning("Document: skipped attribute %r on <%s>: %s", key, local_tag(el), exc)
        self._context.dirty = True
        return True

    def clone_subtree(self, identity: str) -> Optional[ET._Element]:
        """Return a detached deep copy of the element with fresh identities."""
        el = self.find(identity)
        if el is None:
            return None
        clone = copy.deepcopy(el)
        clone.tail = None
        self._addressing.regenerate_identities(clone, taken=self.identities())
        return clone

    def insert_after(self, target_identity: str, element: ET._Element) -> bool:
        """Insert *element* as the next sibling of the target element.

        Identities of *element* that clash with the document are regenerated
        before insertion.
        """
        target = self.find(target_identity)
        if target is None:
            return False
        parent = target.getparent()
        if parent is None:
            return False

        taken = self.identities()
        if taken & self._addressing.collect(element):
            self._addressing.regenerate_identities(element, taken=taken)

        element.tail = target.tail
        target.tail = None
        parent.insert(parent.index(target) + 1, element)
        self._context.dirty = True
        return True

    def export_subtree(self, identity: str) -> Optional[str]:
        """Return the element's XML text (the clipboard format)."""
        el = self.find(identity)
        if el is None:
            return None
        return ET.tostring(el, encoding="unicode", with_tail=False)

    def import_subtree(self, text: TextLike) -> ET._Element:
        """Parse a clipboard fragment into a detached element with fresh identities.

        Raises
        ------
        DocumentParseError
            If *text* is not a well-formed element or still holds entity
            references (their declarations would not travel with it).
        """
        element = self.parse(text, "<clipboard>").getroot()
        entities = sorted({node.name for node in element.iter(ET.Entity)})
        if entities:
            raise DocumentParseError(
                f"Fragment uses entity references: {', '.join(entities)}", "<clipboard>"
            )
        self._addressing.regenerate_identities(element, taken=self.identities())
        return element

    # ------------------------------------------------------------------
    # Binary content
    # ------------------------------------------------------------------

    def set_binary_content(self, identity: str, raw: bytes) -> bool:
        """Store *raw* as the encoded text content of a binary element."""
        el = self.find(identity)
        if el is None:
            return False
        if self._introspector.content_classification(local_tag(el)) is not ContentClass.BINARY:
            logger.warning("Document: <%s> does not hold binary content", local_tag(el))
            return False
        el.text = encode_binary(raw, compress=self._compress_binary)
        self._context.dirty = True
        return True

    def get_binary_content(self, identity: str) -> Optional[bytes]:
        """Decode the element's text content; None if missing or not decodable."""
        el = self.find(identity)
        if el is None or not el.text:
            return None
        try:
            return decode_binary(el.text, compress=self._compress_binary)
        except ValueError as exc:
            logger.warning("Document: cannot decode content of %s: %s", identity, exc)
            return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _populate_new_element(self, el: ET._Element, type_name: str, taken: Set[str]) -> str:
        identity_attribute = self._addressing.identity_attribute
        identity = self._addressing.generate(type_name, taken)
        el.set(identity_attribute, identity)
        for name, value in self._introspector.default_attributes(type_name).items():
            if name != identity_attribute:
                el.set(name, value)

        default_text = self._introspector.default_text(type_name)
        if default_text is not None and self._introspector.content_classification(type_name) is ContentClass.TEXT:
            el.text = default_text
        return identity
