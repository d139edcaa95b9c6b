from __future__ import annotations

"""Schema-driven editing hints.

The :class:`SchemaIntrospector` answers the structural questions the editor
asks while building views and creating elements: which element types can
hold children, which children are legal under a parent, which attributes
are required and what values a new element starts with.

It never raises from a query.  When no schema could be loaded it degrades
to "everything is a leaf, no defaults" so that documents can still be
viewed and edited free-form.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from lxml import etree as ET  # type: ignore

from xmledit_toolkit.config.settings import DEFAULT_BINARY_TYPES
from xmledit_toolkit.core.exceptions import SchemaError
from xmledit_toolkit.core.models import ContentClass, ElementRule
from .loader import compile_sources, discover_schema_files, read_sources
from .resolver import RuleResolver, SchemaIndex

__all__ = ["SchemaModel", "SchemaIntrospector", "load_schema"]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class SchemaModel:
    """Immutable result of loading a schema source set.

    Attributes
    ----------
    sources
        Every indexed schema file, listed ones first.
    rules
        Element type name -> derived :class:`ElementRule`.
    global_elements
        Names of globally declared elements, in declaration order.
    compiled
        The lxml ``XMLSchema`` used for reporting-only validation.
    unresolved
        Type/element/group references that could not be resolved.
    """

    sources: Tuple[Path, ...]
    rules: Dict[str, ElementRule]
    global_elements: Tuple[str, ...]
    compiled: ET.XMLSchema = field(repr=False)
    unresolved: FrozenSet[str] = frozenset()


def load_schema(sources: Iterable[PathLike], *,
                binary_types: Iterable[str] = DEFAULT_BINARY_TYPES) -> SchemaModel:
    """Parse, compile and resolve a schema source set.

    Raises
    ------
    SchemaUnreadableError
        If no sources are given or a source cannot be read.
    SchemaMalformedError
        If a source is not well-formed or the set fails to compile.
    """
    parsed = read_sources(sources)
    compiled = compile_sources(parsed)

    index = SchemaIndex(parsed)
    resolver = RuleResolver(index, binary_types)
    rules = resolver.resolve_all()

    model = SchemaModel(
        sources=tuple(s.path for s in parsed),
        rules=rules,
        global_elements=tuple(index.global_elements),
        compiled=compiled,
        unresolved=frozenset(resolver.unresolved),
    )
    logger.info(
        "Schema: model ready sources=%d elements=%d containers=%d unresolved=%d",
        len(model.sources),
        len(rules),
        sum(1 for r in rules.values() if r.is_container),
        len(model.unresolved),
    )
    return model


class SchemaIntrospector:
    """Read-only query surface over a :class:`SchemaModel`.

    Parameters
    ----------
    model
        Loaded schema model, or None for degraded mode.
    identity_attribute
        Attribute always reported as required and always present in defaults.
    load_error
        The error that prevented loading, kept for diagnostics.
    """

    def __init__(self, model: Optional[SchemaModel] = None, *,
                 identity_attribute: str = "name",
                 load_error: Optional[SchemaError] = None) -> None:
        self._model = model
        self._identity_attribute = identity_attribute
        self.load_error = load_error

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_sources(cls, sources: Iterable[PathLike], *,
                     identity_attribute: str = "name",
                     binary_types: Iterable[str] = DEFAULT_BINARY_TYPES) -> "SchemaIntrospector":
        """Load *sources*; on failure return a degraded introspector instead of raising."""
        try:
            model = load_schema(sources, binary_types=binary_types)
        except SchemaError as exc:
            logger.error("Schema load failed, structural editing disabled: %s", exc)
            return cls(None, identity_attribute=identity_attribute, load_error=exc)
        return cls(model, identity_attribute=identity_attribute)

    @classmethod
    def from_directory(cls, directory: PathLike, *,
                       identity_attribute: str = "name",
                       binary_types: Iterable[str] = DEFAULT_BINARY_TYPES) -> "SchemaIntrospector":
        """Load every ``*.xsd`` of *directory*; degrade on failure."""
        try:
            files = discover_schema_files(directory)
        except SchemaError as exc:
            logger.error("Schema load failed, structural editing disabled: %s", exc)
            return cls(None, identity_attribute=identity_attribute, load_error=exc)
        return cls.from_sources(files, identity_attribute=identity_attribute, binary_types=binary_types)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def available(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> Optional[SchemaModel]:
        return self._model

    @property
    def identity_attribute(self) -> str:
        return self._identity_attribute

    def element_rule(self, element_type: str) -> Optional[ElementRule]:
        if self._model is None:
            return None
        return self._model.rules.get(element_type)

    def element_names(self) -> List[str]:
        if self._model is None:
            return []
        return list(self._model.rules)

    # ------------------------------------------------------------------
    # Structural queries
    # ------------------------------------------------------------------

    def is_container(self, element_type: str) -> bool:
        rule = self.element_rule(element_type)
        return bool(rule and rule.is_container)

    def container_types(self) -> FrozenSet[str]:
        """Return the globally declared element types that can hold children."""
        if self._model is None:
            return frozenset()
        return frozenset(
            name for name in self._model.global_elements
            if self._model.rules[name].is_container
        )

    def allowed_children(self, parent_type: str) -> Tuple[str, ...]:
        """Return legal child element names, in declaration order.

        An empty result means "unknown", not "forbidden": callers should
        then accept free-form child types.
        """
        rule = self.element_rule(parent_type)
        if rule is None:
            return ()
        return rule.allowed_children

    def attribute_constraints(self, element_type: str) -> Dict[str, str]:
        """Map attribute name -> ``"required"`` or ``"optional"``."""
        constraints: Dict[str, str] = {}
        rule = self.element_rule(element_type)
        if rule is not None:
            for name, attr in rule.attributes.items():
                constraints[name] = "required" if attr.required else "optional"
        constraints[self._identity_attribute] = "required"
        return constraints

    def default_attributes(self, element_type: str) -> Dict[str, str]:
        """Return the initial attribute values for a new *element_type*.

        Fixed values win over defaults; required attributes without either
        get an empty placeholder.  Optional attributes without a value are
        omitted.
        """
        if self._model is None:
            return {}
        defaults: Dict[str, str] = {}
        rule = self.element_rule(element_type)
        if rule is not None:
            for name, attr in rule.attributes.items():
                value = attr.initial_value()
                if value is not None:
                    defaults[name] = value
        defaults.setdefault(self._identity_attribute, "")
        return defaults

    def default_text(self, element_type: str) -> Optional[str]:
        """Return the element-level fixed/default value declared for *element_type*."""
        rule = self.element_rule(element_type)
        return rule.default_text if rule is not None else None

    def content_type(self, element_type: str) -> str:
        rule = self.element_rule(element_type)
        return rule.content_type if rule is not None else "xs:string"

    def content_classification(self, element_type: str) -> ContentClass:
        """Return ``BINARY`` for binary-designated content, ``TEXT`` otherwise."""
        rule = self.element_rule(element_type)
        if rule is not None and rule.content is ContentClass.BINARY:
            return ContentClass.BINARY
        return ContentClass.TEXT

    def is_binary(self, element_type: str) -> bool:
        return self.content_classification(element_type) is ContentClass.BINARY

    # ------------------------------------------------------------------
    # Validation (reporting only)
    # ------------------------------------------------------------------

    def validate(self, tree: Union[ET._ElementTree, ET._Element]) -> List[str]:
        """Return validation messages for *tree*; an empty list means valid.

        Edits are never blocked on the outcome; this is a report for the user.
        """
        if self._model is None:
            return []
        schema = self._model.compiled
        if schema.validate(tree):
            return []
        return [f"line {entry.line}: {entry.message}" for entry in schema.error_log]
