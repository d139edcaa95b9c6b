from __future__ import annotations

"""Resolution of element declarations into :class:`ElementRule` objects.

The resolver works on the raw schema documents rather than on the compiled
schema: lxml does not expose the compiled component model, and editing hints
only need the declared structure.

Handled constructs
------------------
- ``xs:element`` with ``type=`` (named complex/simple type), inline
  ``xs:complexType``/``xs:simpleType``, or ``ref=`` to a global element.
- Content models built from ``xs:sequence``/``xs:choice``/``xs:all``,
  ``xs:group ref=`` and ``xs:complexContent`` extension/restriction.
- ``xs:attribute`` (``name=`` or ``ref=``), ``xs:attributeGroup ref=`` and
  ``xs:simpleContent`` extension/restriction.

Names are matched by local name; a prefix on ``type=``/``ref=``/``base=`` is
ignored.  Anything that cannot be resolved yields an empty result and is
recorded in :attr:`RuleResolver.unresolved`.
"""

from dataclasses import dataclass, field
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from lxml import etree as ET  # type: ignore

from xmledit_toolkit.core.models import AttributeRule, ContentClass, ElementRule
from .loader import XSD_NAMESPACE, SchemaSource

__all__ = ["SchemaIndex", "RuleResolver", "local_name"]

logger = logging.getLogger(__name__)

_MODEL_GROUPS = {"sequence", "choice", "all"}


def local_name(qname: Optional[str]) -> str:
    """Strip a namespace prefix from a QName-valued attribute."""
    if not qname:
        return ""
    return qname.split(":", 1)[-1].strip()


def _xs_name(el: ET._Element) -> Optional[str]:
    """Return the XSD local name of *el*, or None for foreign/non-element nodes."""
    if not isinstance(el.tag, str):
        return None
    qname = ET.QName(el)
    if qname.namespace != XSD_NAMESPACE:
        return None
    return qname.localname


def _xs_children(el: ET._Element) -> Iterable[tuple]:
    for child in el:
        name = _xs_name(child)
        if name is not None and name != "annotation":
            yield name, child


class SchemaIndex:
    """Lookup tables of named schema components across all sources."""

    def __init__(self, sources: Sequence[SchemaSource]) -> None:
        self.global_elements: Dict[str, ET._Element] = {}
        self.local_elements: Dict[str, ET._Element] = {}
        self.complex_types: Dict[str, ET._Element] = {}
        self.simple_types: Dict[str, ET._Element] = {}
        self.groups: Dict[str, ET._Element] = {}
        self.attribute_groups: Dict[str, ET._Element] = {}
        self.attributes: Dict[str, ET._Element] = {}

        tables = {
            "element": self.global_elements,
            "complexType": self.complex_types,
            "simpleType": self.simple_types,
            "group": self.groups,
            "attributeGroup": self.attribute_groups,
            "attribute": self.attributes,
        }
        for source in sources:
            root = source.root
            for kind, child in _xs_children(root):
                if kind == "redefine":
                    # Redefined components replace the originals
                    for inner_kind, inner in _xs_children(child):
                        name = inner.get("name")
                        if name and inner_kind in tables:
                            tables[inner_kind][name] = inner
                    continue
                table = tables.get(kind)
                name = child.get("name")
                if table is not None and name:
                    table.setdefault(name, child)

        for source in sources:
            for el in source.root.iterfind(".//xs:element[@name]", {"xs": XSD_NAMESPACE}):
                if el.getparent() is source.root:
                    continue
                self.local_elements.setdefault(el.get("name"), el)

    def element_declaration(self, name: str) -> Optional[ET._Element]:
        """Return the global declaration of *name*, else the first local one."""
        decl = self.global_elements.get(name)
        if decl is None:
            decl = self.local_elements.get(name)
        return decl

    def element_names(self) -> List[str]:
        names = list(self.global_elements)
        names.extend(n for n in self.local_elements if n not in self.global_elements)
        return names


@dataclass
class _ContentModel:
    children: List[str] = field(default_factory=list)
    attributes: Dict[str, AttributeRule] = field(default_factory=dict)
    container: bool = False
    simple_base: Optional[str] = None

    def add_child(self, name: str) -> None:
        if name and name not in self.children:
            self.children.append(name)


class RuleResolver:
    """Turns element declarations into :class:`ElementRule` objects."""

    def __init__(self, index: SchemaIndex, binary_types: Iterable[str]) -> None:
        self._index = index
        self._binary_types: FrozenSet[str] = frozenset(binary_types)
        self.unresolved: Set[str] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_all(self) -> Dict[str, ElementRule]:
        """Build rules for every declared element name (global names win)."""
        rules: Dict[str, ElementRule] = {}
        for name in self._index.element_names():
            rules[name] = self.resolve(name)
        if self.unresolved:
            logger.warning("Schema: unresolved references: %s", ", ".join(sorted(self.unresolved)))
        return rules

    def resolve(self, name: str) -> ElementRule:
        decl = self._index.element_declaration(name)
        if decl is None:
            self._note_unresolved(f"element {name}")
            return ElementRule(name=name)
        return self.rule_from_declaration(decl, name)

    def rule_from_declaration(self, decl: ET._Element, name: str) -> ElementRule:
        default_text = decl.get("fixed", decl.get("default"))

        ref = decl.get("ref")
        if ref:
            target = self._index.global_elements.get(local_name(ref))
            if target is None:
                self._note_unresolved(f"element ref {ref}")
                return ElementRule(name=name, default_text=default_text)
            decl = target
            if default_text is None:
                default_text = decl.get("fixed", decl.get("default"))

        type_attr = decl.get("type")
        complex_type: Optional[ET._Element] = None
        content_type = "xs:string"
        if type_attr:
            complex_type = self._index.complex_types.get(local_name(type_attr))
            if complex_type is None:
                content_type = type_attr
                if not self._is_builtin(decl, type_attr) and local_name(type_attr) not in self._index.simple_types:
                    self._note_unresolved(f"type {type_attr}")
        else:
            complex_type = decl.find(f"{{{XSD_NAMESPACE}}}complexType")
            if complex_type is None:
                simple = decl.find(f"{{{XSD_NAMESPACE}}}simpleType")
                if simple is not None:
                    content_type = self._simple_type_base(simple) or content_type

        model = _ContentModel()
        if complex_type is not None:
            self._analyse_body(complex_type, model, visited=set())
            if model.simple_base:
                content_type = model.simple_base

        if self._is_binary([type_attr, content_type]):
            content = ContentClass.BINARY
        elif model.container:
            content = ContentClass.STRUCTURED
        else:
            content = ContentClass.TEXT

        return ElementRule(
            name=name,
            is_container=model.container,
            allowed_children=tuple(model.children),
            attributes=dict(model.attributes),
            content_type=content_type,
            content=content,
            default_text=default_text,
            type_name=type_attr,
        )

    # ------------------------------------------------------------------
    # Content model walking
    # ------------------------------------------------------------------

    def _analyse_body(self, body: ET._Element, model: _ContentModel, visited: Set[str]) -> None:
        """Fold the children of a complexType (or derivation) into *model*."""
        for kind, child in _xs_children(body):
            if kind in _MODEL_GROUPS:
                model.container = True
                self._collect_particles(child, model, set())
            elif kind == "group":
                model.container = True
                self._collect_group_ref(child, model, set())
            elif kind in ("attribute", "attributeGroup", "anyAttribute"):
                self._collect_attribute(kind, child, model.attributes, set())
            elif kind == "complexContent":
                self._analyse_derivation(child, model, visited, simple=False)
            elif kind == "simpleContent":
                self._analyse_derivation(child, model, visited, simple=True)

    def _analyse_derivation(self, content: ET._Element, model: _ContentModel,
                            visited: Set[str], *, simple: bool) -> None:
        for kind, derivation in _xs_children(content):
            if kind not in ("extension", "restriction"):
                continue
            base = derivation.get("base")
            base_type = self._index.complex_types.get(local_name(base)) if base else None

            if base_type is not None and local_name(base) not in visited:
                inherited = _ContentModel()
                self._analyse_body(base_type, inherited, visited | {local_name(base)})
                model.attributes.update(inherited.attributes)
                if simple:
                    model.simple_base = inherited.simple_base or model.simple_base
                elif kind == "extension":
                    # A restriction restates its particles; only extensions inherit them
                    model.container = model.container or inherited.container
                    for name in inherited.children:
                        model.add_child(name)
            elif simple and base:
                model.simple_base = base
            elif base and base_type is None and not self._is_builtin(derivation, base):
                self._note_unresolved(f"base type {base}")

            self._analyse_body(derivation, model, visited)
            return

    def _collect_particles(self, group: ET._Element, model: _ContentModel, seen_groups: Set[str]) -> None:
        for kind, child in _xs_children(group):
            if kind == "element":
                model.add_child(child.get("name") or local_name(child.get("ref")))
            elif kind in _MODEL_GROUPS:
                self._collect_particles(child, model, seen_groups)
            elif kind == "group":
                self._collect_group_ref(child, model, seen_groups)

    def _collect_group_ref(self, ref_el: ET._Element, model: _ContentModel, seen_groups: Set[str]) -> None:
        ref = local_name(ref_el.get("ref"))
        if not ref or ref in seen_groups:
            return
        definition = self._index.groups.get(ref)
        if definition is None:
            self._note_unresolved(f"group {ref}")
            return
        self._collect_particles(definition, model, seen_groups | {ref})

    def _collect_attribute(self, kind: str, el: ET._Element,
                           attributes: Dict[str, AttributeRule], seen_groups: Set[str]) -> None:
        if kind == "anyAttribute":
            return
        if kind == "attributeGroup":
            ref = local_name(el.get("ref"))
            if not ref or ref in seen_groups:
                return
            definition = self._index.attribute_groups.get(ref)
            if definition is None:
                self._note_unresolved(f"attributeGroup {ref}")
                return
            for inner_kind, inner in _xs_children(definition):
                if inner_kind in ("attribute", "attributeGroup"):
                    self._collect_attribute(inner_kind, inner, attributes, seen_groups | {ref})
            return

        use = el.get("use", "optional")
        default = el.get("default")
        fixed = el.get("fixed")
        type_name = el.get("type")
        name = el.get("name")
        if not name and el.get("ref"):
            name = local_name(el.get("ref"))
            target = self._index.attributes.get(name)
            if target is not None:
                default = default if default is not None else target.get("default")
                fixed = fixed if fixed is not None else target.get("fixed")
                type_name = type_name or target.get("type")
        if not name:
            return
        if use == "prohibited":
            attributes.pop(name, None)
            return
        attributes[name] = AttributeRule(name=name, use=use, default=default, fixed=fixed, type_name=type_name)

    # ------------------------------------------------------------------
    # Simple types
    # ------------------------------------------------------------------

    def _simple_type_base(self, simple: ET._Element) -> Optional[str]:
        for kind, child in _xs_children(simple):
            if kind == "restriction":
                return child.get("base")
            if kind in ("list", "union"):
                return "xs:string"
        return None

    def _type_chain(self, type_name: str) -> List[str]:
        """Return *type_name* followed by the bases of named simple types it derives from."""
        chain = [type_name]
        seen = {local_name(type_name)}
        current = self._index.simple_types.get(local_name(type_name))
        while current is not None:
            base = self._simple_type_base(current)
            if not base or local_name(base) in seen:
                break
            chain.append(base)
            seen.add(local_name(base))
            current = self._index.simple_types.get(local_name(base))
        return chain

    def _is_binary(self, type_names: Iterable[Optional[str]]) -> bool:
        for type_name in type_names:
            if not type_name:
                continue
            for candidate in self._type_chain(type_name):
                if candidate in self._binary_types or local_name(candidate) in self._binary_types:
                    return True
        return False

    @staticmethod
    def _is_builtin(context: ET._Element, qname: str) -> bool:
        prefix = qname.split(":", 1)[0] if ":" in qname else None
        return context.nsmap.get(prefix) == XSD_NAMESPACE

    def _note_unresolved(self, what: str) -> None:
        if what not in self.unresolved:
            logger.debug("Schema: unresolved %s", what)
        self.unresolved.add(what)
