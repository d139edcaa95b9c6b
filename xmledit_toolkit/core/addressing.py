from __future__ import annotations

"""Identity-attribute addressing of document elements.

Every element carries one attribute (by default ``name``) whose value is
unique across the whole document.  Views and edit requests refer to
elements by that value only, never by object reference, so a refreshed
tree can be addressed exactly like the one it replaced.

Only element nodes take part; comments and processing instructions are
skipped by every traversal here.
"""

from collections import Counter
import logging
from typing import Dict, List, Optional, Set
import uuid

from lxml import etree as ET  # type: ignore

from xmledit_toolkit.core.exceptions import AddressingViolation

__all__ = ["AddressingScheme"]

logger = logging.getLogger(__name__)


def _elements(root: ET._Element):
    return root.iter(tag=ET.Element)


def _local_tag(el: ET._Element) -> str:
    return ET.QName(el).localname


class AddressingScheme:
    """Assigns, regenerates and looks up element identities.

    Parameters
    ----------
    identity_attribute
        Name of the attribute holding the identity.
    prefix
        Prefix of generated values: ``{prefix}_{Tag}_{5 hex chars}``.
    """

    def __init__(self, identity_attribute: str = "name", prefix: str = "synth") -> None:
        self.identity_attribute = identity_attribute
        self.prefix = prefix

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self, tag: str, taken: Set[str]) -> str:
        """Return a fresh value for an element named *tag* not present in *taken*.

        The returned value is added to *taken*.
        """
        while True:
            candidate = f"{self.prefix}_{tag}_{uuid.uuid4().hex[:5]}"
            if candidate not in taken:
                taken.add(candidate)
                return candidate

    def identity_of(self, el: ET._Element) -> Optional[str]:
        value = el.get(self.identity_attribute)
        if value is None or not value.strip():
            return None
        return value

    def collect(self, root: ET._Element) -> Set[str]:
        """Return every non-blank identity value under (and including) *root*."""
        values = set()
        for el in _elements(root):
            value = self.identity_of(el)
            if value is not None:
                values.add(value)
        return values

    # ------------------------------------------------------------------
    # Invariant maintenance
    # ------------------------------------------------------------------

    def ensure_identities(self, root: ET._Element) -> List[str]:
        """Give every element lacking a usable identity a fresh one.

        Blank values and values repeating an earlier element's (in document
        order) are replaced.  Generated values avoid every value present in
        the tree when the call starts.

        Returns
        -------
        list[str]
            Newly assigned values, in document order.
        """
        taken = self.collect(root)
        seen: Set[str] = set()
        assigned: List[str] = []
        for el in _elements(root):
            value = self.identity_of(el)
            if value is not None and value not in seen:
                seen.add(value)
                continue
            if value is not None:
                logger.warning("Addressing: duplicate identity %r on <%s>, reassigning", value, _local_tag(el))
            fresh = self.generate(_local_tag(el), taken)
            el.set(self.identity_attribute, fresh)
            seen.add(fresh)
            assigned.append(fresh)
            logger.debug("Addressing: assigned %r to <%s>", fresh, _local_tag(el))
        if assigned:
            logger.info("Addressing: assigned %d synthetic identit%s", len(assigned), "y" if len(assigned) == 1 else "ies")
        return assigned

    def regenerate_identities(self, subtree_root: ET._Element,
                              taken: Optional[Set[str]] = None) -> Dict[str, str]:
        """Replace every identity in *subtree_root* with a fresh value.

        Parameters
        ----------
        subtree_root
            Detached clone whose identities must not be reused.
        taken
            Values already in use by the live document.  The subtree's own
            current values are avoided too.  Updated in place when given.

        Returns
        -------
        dict[str, str]
            Old value -> new value, for elements that had a value.
        """
        if taken is None:
            taken = set()
        taken.update(self.collect(subtree_root))
        mapping: Dict[str, str] = {}
        for el in _elements(subtree_root):
            old = self.identity_of(el)
            fresh = self.generate(_local_tag(el), taken)
            el.set(self.identity_attribute, fresh)
            if old is not None:
                mapping[old] = fresh
        return mapping

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_by_identity(self, root: ET._Element, value: str) -> Optional[ET._Element]:
        """Depth-first search for the element holding *value*; first match wins."""
        if not value:
            return None
        for el in _elements(root):
            if el.get(self.identity_attribute) == value:
                return el
        return None

    def duplicates(self, root: ET._Element) -> Dict[str, int]:
        counts = Counter(
            el.get(self.identity_attribute)
            for el in _elements(root)
            if el.get(self.identity_attribute)
        )
        return {value: n for value, n in counts.items() if n > 1}

    def assert_unique(self, root: ET._Element) -> None:
        """Raise :class:`AddressingViolation` if any identity occurs twice."""
        dupes = self.duplicates(root)
        if dupes:
            raise AddressingViolation(dupes)
