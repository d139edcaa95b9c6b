from __future__ import annotations

"""Editing, preview and view-model services.

Services take their collaborators as constructor arguments; the
:class:`~xmledit_toolkit.core.session.EditorSession` wires them together.
"""

from .mutation_service import MutationAction, MutationRequest, MutationService, OperationResult  # noqa: F401
from .preview_service import PreviewResult, PreviewService, StylesheetManager, VisualizationBridge  # noqa: F401
from .view_model_service import NodeEditModel, OutlineNode, build_edit_model, build_outline  # noqa: F401

__all__: list[str] = [
    "MutationAction",
    "MutationRequest",
    "MutationService",
    "OperationResult",
    "PreviewResult",
    "PreviewService",
    "StylesheetManager",
    "VisualizationBridge",
    "NodeEditModel",
    "OutlineNode",
    "build_edit_model",
    "build_outline",
]
