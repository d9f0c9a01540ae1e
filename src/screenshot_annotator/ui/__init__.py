"""Interactive GTK components: region selection and the annotation editor."""

from .editor import EditorWindow, editor_handler, run_editor
from .selection import SelectionOverlay, select_region, selection_handler

__all__ = [
    "EditorWindow",
    "SelectionOverlay",
    "editor_handler",
    "run_editor",
    "select_region",
    "selection_handler",
]
