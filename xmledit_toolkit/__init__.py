"""Top-level package of the XML editing toolkit.

This package hosts the GUI-agnostic editing core.  Front-ends (desktop,
web, CLI) should only depend on the public API exposed here rather than
importing internal modules directly.
"""

from .core.models import DocumentContext  # re-export for convenience
from .core.session import EditorSession

__all__: list[str] = [
    "DocumentContext",
    "EditorSession",
]
