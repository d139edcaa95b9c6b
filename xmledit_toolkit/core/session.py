from __future__ import annotations

"""Editor session: the composition root of the editing core.

An :class:`EditorSession` owns one schema, one document and the services
working on them.  Front-ends create a session and talk to it (or to its
services) instead of reaching for module-level state.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from xmledit_toolkit.config import ConfigManager, EditorSettings
from .addressing import AddressingScheme
from .document import DocumentModel
from .schema import SchemaIntrospector
from .services.mutation_service import MutationService
from .services.preview_service import PreviewService, StylesheetManager, VisualizationBridge
from .services.view_model_service import NodeEditModel, OutlineNode, build_edit_model, build_outline

__all__ = ["EditorSession"]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class EditorSession:
    """Wires the schema, document and services of one editing session.

    Parameters
    ----------
    settings
        Editing rules (identity attribute, content key, binary handling).
    introspector
        Loaded (or degraded) schema introspector.
    stylesheets
        Optional pre-configured stylesheet manager.
    """

    def __init__(self, settings: EditorSettings, introspector: SchemaIntrospector,
                 stylesheets: Optional[StylesheetManager] = None) -> None:
        self.settings = settings
        self.introspector = introspector
        self.addressing = AddressingScheme(settings.identity_attribute, settings.identity_prefix)
        self.document = DocumentModel(
            introspector,
            self.addressing,
            content_key=settings.content_key,
            compress_binary=settings.compress_binary,
        )
        self.mutations = MutationService(self.document)
        self.stylesheets = stylesheets or StylesheetManager()
        self.preview = PreviewService(self.document, self.stylesheets)
        self.bridge = VisualizationBridge(self.mutations, self.preview)

    @classmethod
    def create(cls, settings: Optional[EditorSettings] = None, *,
               schema_dir: Optional[PathLike] = None,
               schema_sources: Optional[Iterable[PathLike]] = None,
               config: Optional[ConfigManager] = None) -> "EditorSession":
        """Build a session from settings (read from configuration when omitted).

        Explicit *schema_sources* win over *schema_dir*, which wins over the
        configured schema directory.  Without any schema the session runs in
        degraded mode.
        """
        if settings is None:
            settings = EditorSettings.from_config(config)

        kwargs = dict(identity_attribute=settings.identity_attribute, binary_types=settings.binary_types)
        if schema_sources is not None:
            introspector = SchemaIntrospector.from_sources(schema_sources, **kwargs)
        elif schema_dir is not None or settings.schema_directory is not None:
            introspector = SchemaIntrospector.from_directory(schema_dir or settings.schema_directory, **kwargs)
        else:
            logger.info("Session: no schema configured, structural editing disabled")
            introspector = SchemaIntrospector(None, identity_attribute=settings.identity_attribute)

        session = cls(settings, introspector)
        if settings.stylesheet is not None and not session.stylesheets.load_custom(settings.stylesheet):
            logger.warning("Session: configured stylesheet ignored path=%s", settings.stylesheet)
        return session

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    def open(self, path: PathLike) -> None:
        """Load *path*; on a parse error the current document is kept."""
        self.document.load_file(path)
        for message in self.document.validate():
            logger.info("Session: validation %s", message)

    def save(self, path: Optional[PathLike] = None, *, indent: bool = True) -> Path:
        return self.document.save_file(path, indent=indent)

    def new_document(self, root_type: str) -> Optional[str]:
        return self.document.new_document(root_type)

    def close(self) -> None:
        self.document.close()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def outline(self) -> Optional[OutlineNode]:
        return build_outline(self.document.root, self.addressing.identity_attribute)

    def edit_model(self, identity: str) -> Optional[NodeEditModel]:
        return build_edit_model(self.document, identity)
