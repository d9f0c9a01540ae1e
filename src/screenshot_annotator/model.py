"""Annotation document model with linear undo/redo history."""

import copy
import logging
import math
from typing import Optional

from .elements import (
    HIGHLIGHTER,
    PEN,
    Arrow,
    Element,
    Ellipse,
    Freehand,
    Point,
    Rectangle,
    Style,
    contains,
    is_empty,
    translated,
)
from .errors import EmptyInput

log = logging.getLogger(__name__)

SHAPE_KINDS = (PEN, HIGHLIGHTER, "rect", "ellipse", "arrow")


class History:
    """Linear list of element snapshots with a cursor.

    The cursor points at the snapshot matching the live document.
    Committing while the cursor is behind the end discards every later
    snapshot; there is no redo branch.
    """

    def __init__(self, initial: Optional[list[Element]] = None):
        self._snapshots: list[list[Element]] = []
        self.cursor = -1
        self.commit(initial or [])

    def __len__(self) -> int:
        return len(self._snapshots)

    def commit(self, elements: list[Element]) -> None:
        del self._snapshots[self.cursor + 1:]
        self._snapshots.append(copy.deepcopy(elements))
        self.cursor = len(self._snapshots) - 1

    def current(self) -> list[Element]:
        return copy.deepcopy(self._snapshots[self.cursor])

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self._snapshots) - 1

    def undo(self) -> Optional[list[Element]]:
        if not self.can_undo:
            return None
        self.cursor -= 1
        return self.current()

    def redo(self) -> Optional[list[Element]]:
        if not self.can_redo:
            return None
        self.cursor += 1
        return self.current()


class AnnotationModel:
    """Committed elements, the element under construction, and history.

    The element under construction is never hit-tested and never part of a
    history snapshot until it is committed.
    """

    def __init__(self, elements: Optional[list[Element]] = None):
        self.elements: list[Element] = list(elements or [])
        self.in_progress: Optional[Element] = None
        self.history = History(self.elements)
        self._handle = 0
        self._drag_index: Optional[int] = None
        self._drag_origin: Optional[Element] = None

    # Construction

    def begin_element(self, kind: str, origin: Point, style: Optional[Style] = None) -> int:
        """Start a zero-extent element at ``origin`` and return its handle."""
        style = style or Style()
        x, y = origin
        if kind in (PEN, HIGHLIGHTER):
            element = Freehand(
                points=[(x, y)], color=style.color, stroke_width=style.stroke_width, style=kind
            )
        elif kind == "rect":
            element = Rectangle(x, y, 0, 0, color=style.color, stroke_width=style.stroke_width)
        elif kind == "ellipse":
            element = Ellipse(x, y, 0, color=style.color, stroke_width=style.stroke_width)
        elif kind == "arrow":
            element = Arrow(x, y, x, y, color=style.color, stroke_width=style.stroke_width)
        else:
            raise ValueError(f"Unknown shape kind: {kind}")

        self._handle += 1
        self.in_progress = element
        return self._handle

    def _check_handle(self, handle: int) -> Element:
        if self.in_progress is None or handle != self._handle:
            raise ValueError(f"No element under construction for handle {handle}")
        return self.in_progress

    def update_element(self, handle: int, point: Point) -> None:
        """Stretch the element under construction from its anchor to ``point``."""
        element = self._check_handle(handle)
        x, y = point
        if isinstance(element, Freehand):
            element.points.append((x, y))
        elif isinstance(element, Rectangle):
            element.w = x - element.x
            element.h = y - element.y
        elif isinstance(element, Ellipse):
            element.r = math.hypot(x - element.cx, y - element.cy)
        elif isinstance(element, Arrow):
            element.x2 = x
            element.y2 = y
        else:
            raise TypeError(f"Cannot update element: {element!r}")

    def commit_element(self, handle: int, discard_empty: bool = False) -> Optional[int]:
        """Move the element under construction to the top of the document.

        Returns:
            Index of the committed element, or None if it was discarded
        """
        element = self._check_handle(handle)
        self.in_progress = None
        if discard_empty and is_empty(element):
            log.debug("Discarded zero-extent %s", type(element).__name__)
            return None
        return self.add_element(element)

    def cancel_element(self) -> None:
        """Drop the element under construction, if any."""
        self.in_progress = None

    def add_element(self, element: Element) -> int:
        """Commit a finished element on top and record a snapshot."""
        self.elements.append(element)
        self.history.commit(self.elements)
        return len(self.elements) - 1

    def add_text(self, element: Element) -> int:
        """Commit a text box, refusing blank text.

        Raises:
            EmptyInput: If the element has no visible content
        """
        if is_empty(element):
            raise EmptyInput("Nothing to commit")
        return self.add_element(element)

    # Queries

    def hit_test(self, point: Point) -> Optional[int]:
        """Index of the topmost committed element under ``point``."""
        x, y = point
        for index in range(len(self.elements) - 1, -1, -1):
            if contains(self.elements[index], x, y):
                return index
        return None

    # Mutation

    def begin_move(self, index: int) -> None:
        """Remember the element's pre-drag state as the origin of a move."""
        self._drag_index = index
        self._drag_origin = copy.deepcopy(self.elements[index])

    def move_element(self, index: int, delta: Point) -> None:
        """Place the element at its pre-drag position plus ``delta``."""
        if self._drag_index != index:
            self.begin_move(index)
        dx, dy = delta
        self.elements[index] = translated(self._drag_origin, dx, dy)

    def end_move(self) -> None:
        """Finish a drag and record a snapshot."""
        if self._drag_index is None:
            return
        self._drag_index = None
        self._drag_origin = None
        self.history.commit(self.elements)

    def delete_element(self, index: int) -> Element:
        """Remove an element and record a snapshot."""
        element = self.remove_element(index)
        self.history.commit(self.elements)
        return element

    def remove_element(self, index: int) -> Element:
        """Remove an element without recording a snapshot."""
        return self.elements.pop(index)

    # History

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def undo(self) -> bool:
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self.elements = snapshot
        return True

    def redo(self) -> bool:
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self.elements = snapshot
        return True
