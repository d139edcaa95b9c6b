from __future__ import annotations

"""Discovery, parsing and compilation of XML Schema source sets.

All sources are parsed individually (for introspection) and compiled
together (for validation) so that cross-file type references resolve.
Local files referenced through ``xs:include``/``xs:import``/``xs:redefine``
are followed and indexed even when they were not listed explicitly.
"""

from dataclasses import dataclass, replace
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from lxml import etree as ET  # type: ignore

from xmledit_toolkit.core.exceptions import SchemaMalformedError, SchemaUnreadableError

__all__ = [
    "XSD_NAMESPACE",
    "NSMAP",
    "SchemaSource",
    "discover_schema_files",
    "read_sources",
    "compile_sources",
]

logger = logging.getLogger(__name__)

XSD_NAMESPACE = "http://www.w3.org/2001/XMLSchema"
NSMAP = {"xs": XSD_NAMESPACE}

_XS_SCHEMA = f"{{{XSD_NAMESPACE}}}schema"
_REFERENCE_TAGS = {f"{{{XSD_NAMESPACE}}}{name}" for name in ("include", "import", "redefine")}


@dataclass(frozen=True)
class SchemaSource:
    """One parsed schema document.

    ``listed`` marks compilation roots. Documents reached through another
    document's include/import are indexed but compiled only through it.
    """

    path: Path
    document: ET._ElementTree
    target_namespace: Optional[str]
    listed: bool = True

    @property
    def root(self) -> ET._Element:
        return self.document.getroot()


def discover_schema_files(directory: Union[str, Path]) -> List[Path]:
    """Return the ``*.xsd`` files of *directory*, sorted by name.

    Raises
    ------
    SchemaUnreadableError
        If the directory does not exist or contains no schema file.
    """
    dir_path = Path(directory)
    if not dir_path.is_dir():
        raise SchemaUnreadableError("XSD directory not found", dir_path)

    files = sorted(p for p in dir_path.iterdir() if p.is_file() and p.suffix.lower() == ".xsd")
    if not files:
        raise SchemaUnreadableError("No XSD files found in directory", dir_path)

    logger.info("Schema: found %d XSD file(s) in %s", len(files), dir_path)
    for path in files:
        logger.debug("Schema:   - %s", path.name)
    return files


def _make_parser() -> ET.XMLParser:
    return ET.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)


def _parse_one(path: Path, *, listed: bool) -> SchemaSource:
    if not path.is_file():
        raise SchemaUnreadableError("Schema source not found", path)
    try:
        document = ET.parse(str(path), _make_parser())
    except ET.XMLSyntaxError as exc:
        raise SchemaMalformedError(f"Schema is not well-formed: {exc}", path, cause=exc) from exc
    except OSError as exc:
        raise SchemaUnreadableError(f"Could not read schema: {exc}", path, cause=exc) from exc

    root = document.getroot()
    if root.tag != _XS_SCHEMA:
        raise SchemaMalformedError(f"Root element {root.tag!r} is not xs:schema", path)
    return SchemaSource(path=path, document=document, target_namespace=root.get("targetNamespace"), listed=listed)


def read_sources(sources: Iterable[Union[str, Path]]) -> List[SchemaSource]:
    """Parse the listed schema files and any local files they reference.

    Raises
    ------
    SchemaUnreadableError
        If *sources* is empty or a listed file is missing.
    SchemaMalformedError
        If a document is not well-formed or not an ``xs:schema``.
    """
    listed = [Path(s).resolve() for s in sources]
    if not listed:
        raise SchemaUnreadableError("Schema source list is empty")

    parsed: List[SchemaSource] = []
    seen = set()
    referenced = set()
    pending = [(path, True) for path in listed]
    while pending:
        path, is_listed = pending.pop(0)
        if path in seen:
            continue
        seen.add(path)
        source = _parse_one(path, listed=is_listed)
        parsed.append(source)
        logger.info("Schema: parsed source %s%s", path.name, "" if is_listed else " (referenced)")

        for ref in source.root:
            if ref.tag not in _REFERENCE_TAGS:
                continue
            location = ref.get("schemaLocation")
            if not location or "://" in location:
                continue
            target = (path.parent / location).resolve()
            referenced.add(target)
            if target in seen:
                continue
            if target.is_file():
                pending.append((target, target in listed))
            else:
                logger.warning("Schema: referenced file not found %s (from %s)", location, path.name)

    # A listed file already pulled in by another listed file is compiled
    # through that file only.
    roots = [s.path for s in parsed if s.listed and s.path not in referenced]
    if not roots:
        roots = [parsed[0].path]
    return [replace(s, listed=s.path in roots) for s in parsed]


def _driver_document(sources: Sequence[SchemaSource]) -> ET._Element:
    """Build a schema that pulls every listed source in by file URI."""
    driver = ET.Element(_XS_SCHEMA, nsmap={"xs": XSD_NAMESPACE})
    imported = set()
    for source in sources:
        uri = source.path.as_uri()
        if source.target_namespace is None:
            ET.SubElement(driver, f"{{{XSD_NAMESPACE}}}include", schemaLocation=uri)
            continue
        if source.target_namespace in imported:
            # Only the first import per namespace is honoured; later files
            # must be reachable through that file's own includes.
            logger.warning("Schema: namespace %s already imported, skipping %s",
                           source.target_namespace, source.path.name)
            continue
        imported.add(source.target_namespace)
        ET.SubElement(
            driver,
            f"{{{XSD_NAMESPACE}}}import",
            namespace=source.target_namespace,
            schemaLocation=uri,
        )
    return driver


def compile_sources(sources: Sequence[SchemaSource]) -> ET.XMLSchema:
    """Compile the listed sources together into one lxml ``XMLSchema``.

    Raises
    ------
    SchemaMalformedError
        If compilation fails.
    """
    listed = [s for s in sources if s.listed]
    try:
        if len(listed) == 1:
            compiled = ET.XMLSchema(listed[0].document)
        else:
            compiled = ET.XMLSchema(_driver_document(listed))
    except ET.XMLSchemaParseError as exc:
        errors = [str(entry) for entry in exc.error_log]
        logger.error("Schema: compilation failed (%d error(s))", len(errors))
        raise SchemaMalformedError(
            f"Failed to compile schemas: {exc}",
            listed[0].path if len(listed) == 1 else None,
            errors=errors,
            cause=exc,
        ) from exc
    logger.info("Schema: all %d schema(s) compiled successfully", len(listed))
    return compiled
