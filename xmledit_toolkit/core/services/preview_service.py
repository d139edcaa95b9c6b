from __future__ import annotations

"""Visualization services: stylesheet selection, SVG rendering and the bridge.

The bridge is the two-way channel between a rendered visualization and the
editing core: SVG text goes out, flat JSON edit records come back in.
"""

from dataclasses import dataclass
from importlib import resources
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from lxml import etree as ET  # type: ignore

from xmledit_toolkit.core.document import DocumentModel
from xmledit_toolkit.core.preview import xml_compiler
from .mutation_service import MutationService, OperationResult, Payload

__all__ = [
    "FALLBACK_XSLT",
    "StylesheetManager",
    "PreviewResult",
    "PreviewService",
    "VisualizationBridge",
]

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "default_visualization.xslt"

FALLBACK_XSLT = b"""<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform"
                xmlns="http://www.w3.org/2000/svg">
  <xsl:output method="xml" indent="yes"/>
  <xsl:template match="/">
    <svg width="400" height="300" viewBox="0 0 400 300">
      <text x="20" y="30" fill="red">ERROR: Visualization file missing.</text>
    </svg>
  </xsl:template>
</xsl:stylesheet>"""


class StylesheetManager:
    """Chooses the active visualization stylesheet.

    Priority: a custom file loaded with :meth:`load_custom`, then the default
    template, then :data:`FALLBACK_XSLT` (an error SVG).  Compiled transforms
    are cached per source.
    """

    def __init__(self, default_path: Optional[Union[str, Path]] = None) -> None:
        self._default_path = Path(default_path) if default_path else None
        self._custom_path: Optional[Path] = None
        self._cache: Dict[str, ET.XSLT] = {}
        self._default_failed = False

    @property
    def custom_path(self) -> Optional[Path]:
        return self._custom_path

    @property
    def active_source(self) -> str:
        """Label of the stylesheet :meth:`get_transform` would use."""
        if self._custom_path is not None:
            return f"custom:{self._custom_path}"
        if self._default_transform() is not None:
            return "default"
        return "fallback"

    def load_custom(self, path: Union[str, Path]) -> bool:
        """Make *path* the active stylesheet.

        Returns False (keeping the current choice) if the path is missing, is
        a directory or does not compile.
        """
        path = Path(path)
        if not path.exists():
            logger.warning("Preview: custom stylesheet not found path=%s", path)
            return False
        if path.is_dir():
            logger.warning("Preview: custom stylesheet path is a directory path=%s", path)
            return False
        try:
            # Parsing from the path keeps relative xsl:include/xsl:import working
            transform = ET.XSLT(ET.parse(str(path)))
        except (ET.XMLSyntaxError, ET.XSLTParseError, OSError) as exc:
            logger.error("Preview FAIL: custom stylesheet rejected path=%s err=%s", path, exc)
            return False
        self._custom_path = path
        self._cache[f"custom:{path}"] = transform
        logger.info("Preview: custom stylesheet loaded path=%s", path)
        return True

    def clear_custom(self) -> None:
        self._custom_path = None
        logger.info("Preview: custom stylesheet cleared, using %s", self.active_source)

    def get_transform(self) -> ET.XSLT:
        """Return the compiled transform of the active source."""
        if self._custom_path is not None:
            key = f"custom:{self._custom_path}"
            if key in self._cache:
                return self._cache[key]
        default = self._default_transform()
        if default is not None:
            return default
        if "fallback" not in self._cache:
            logger.warning("Preview: using built-in fallback stylesheet")
            self._cache["fallback"] = ET.XSLT(ET.XML(FALLBACK_XSLT))
        return self._cache["fallback"]

    def _default_transform(self) -> Optional[ET.XSLT]:
        if "default" in self._cache:
            return self._cache["default"]
        if self._default_failed:
            return None
        try:
            if self._default_path is not None:
                doc = ET.parse(str(self._default_path))
            else:
                data = (resources.files("xmledit_toolkit.core.preview")
                        .joinpath("templates").joinpath(DEFAULT_TEMPLATE).read_bytes())
                doc = ET.ElementTree(ET.XML(data))
            transform = ET.XSLT(doc)
        except (ET.XMLSyntaxError, ET.XSLTParseError, OSError) as exc:
            logger.error("Preview: default stylesheet unavailable err=%s", exc)
            self._default_failed = True
            return None
        self._cache["default"] = transform
        return transform


@dataclass
class PreviewResult:
    """Structured result for preview-oriented operations.

    Attributes
    ----------
    success : bool
        Indicates whether the operation completed successfully.
    content : Optional[str]
        SVG (or raw XML) text when successful; None on failure.
    message : str
        Human-readable outcome message. Clear on failure, brief on success.
    details : Optional[Dict[str, Any]]
        Structured ancillary data (error kinds, stylesheet source, identity).
    """
    success: bool
    content: Optional[str]
    message: str
    details: Optional[Dict[str, Any]] = None


class PreviewService:
    """Renders document elements through the active stylesheet.

    Methods follow a non-raising pattern: routine failures come back as a
    ``PreviewResult`` with ``success=False`` and a ``reason`` in ``details``;
    unexpected exceptions are caught and reported with their class name.
    """

    def __init__(self, document: DocumentModel, stylesheets: Optional[StylesheetManager] = None) -> None:
        self._document = document
        self._stylesheets = stylesheets or StylesheetManager()

    @property
    def stylesheets(self) -> StylesheetManager:
        return self._stylesheets

    # -----------------------------
    # Public API
    # -----------------------------

    def render(self, identity: Optional[str] = None) -> PreviewResult:
        """Render the element holding *identity* (the root when None) to SVG."""
        logger.debug("Preview: render identity=%s", identity)
        element, failure = self._resolve(identity)
        if failure is not None:
            return failure

        source = self._stylesheets.active_source
        try:
            svg = xml_compiler.render_svg(
                element,
                self._stylesheets.get_transform(),
                identity_attribute=self._document.addressing.identity_attribute,
            )
        except ET.XSLTApplyError as exc:
            logger.info("Preview FAIL: xslt_error source=%s msg=%s", source, exc)
            return PreviewResult(
                success=False,
                content=None,
                message=f"Stylesheet failed: {exc}",
                details={"reason": "xslt_error", "stylesheet": source, "error_type": exc.__class__.__name__},
            )
        except Exception as exc:  # noqa: BLE001 - service boundary
            logger.error("Preview FAIL: exception type=%s msg=%s", exc.__class__.__name__, str(exc), exc_info=True)
            return PreviewResult(
                success=False,
                content=None,
                message="Unexpected error while rendering the visualization.",
                details={"reason": "exception", "stylesheet": source, "error_type": exc.__class__.__name__},
            )
        logger.debug("Preview OK: render len=%d source=%s", len(svg), source)
        return PreviewResult(True, svg, "", {"identity": self._identity_of(element), "stylesheet": source})

    def get_raw_xml(self, identity: Optional[str] = None) -> PreviewResult:
        """Return the pretty-printed XML of the element holding *identity*."""
        element, failure = self._resolve(identity)
        if failure is not None:
            return failure
        xml = xml_compiler.get_raw_node_xml(
            element,
            self._identity_of(element) or "",
            identity_attribute=self._document.addressing.identity_attribute,
        )
        if xml is None:
            xml = ET.tostring(element, pretty_print=True, encoding="unicode", with_tail=False)
        return PreviewResult(True, xml, "", {"identity": self._identity_of(element)})

    # -----------------------------
    # Helpers
    # -----------------------------

    def _identity_of(self, element: ET._Element) -> Optional[str]:
        return self._document.addressing.identity_of(element)

    def _resolve(self, identity: Optional[str]):
        if not self._document.is_loaded:
            logger.info("Preview FAIL: no_document")
            return None, PreviewResult(False, None, "No document loaded.", {"reason": "no_document"})
        if identity is None:
            return self._document.root, None
        element = self._document.find(identity)
        if element is None:
            logger.info("Preview FAIL: not_found identity=%s", identity)
            return None, PreviewResult(
                False, None, f"Element '{identity}' not found.", {"reason": "not_found", "identity": identity}
            )
        return element, None


class VisualizationBridge:
    """Two-way channel used by a rendered visualization.

    Outbound: :meth:`render` produces SVG for an element.  Inbound:
    :meth:`handle_request` takes the flat JSON edit records the
    visualization posts back.
    """

    def __init__(self, mutations: MutationService, preview: PreviewService) -> None:
        self._mutations = mutations
        self._preview = preview

    def handle_request(self, payload: Payload) -> OperationResult:
        return self._mutations.handle_payload(payload)

    def render(self, identity: Optional[str] = None) -> PreviewResult:
        return self._preview.render(identity)
