"""Input state machine for the annotation editor.

The controller receives pointer and keyboard input in screen pixels relative
to the canvas widget, converts it into image pixels, and drives the
AnnotationModel. All mutable editor state lives in one EditorSession so a
scripted event sequence can be replayed against a fresh session in tests.

States:
    IDLE              waiting for input
    DRAWING           a shape or stroke is under construction
    DRAGGING_ELEMENT  a committed element follows the pointer (pointer tool)
    TEXT_ENTRY        the text overlay is open
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .elements import (
    LINE_HEIGHT_FACTOR,
    TEXT_PADDING,
    Point,
    Style,
    TextBox,
    TextStyle,
)
from .errors import EmptyInput
from .model import SHAPE_KINDS, AnnotationModel

log = logging.getLogger(__name__)

POINTER = "pointer"
TEXT = "text"
TOOLS = (POINTER, TEXT) + SHAPE_KINDS

# Average glyph advance relative to font size, for overlays without a
# measured size
CHAR_WIDTH_FACTOR = 0.6


class EditorState(Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    DRAGGING_ELEMENT = "dragging_element"
    TEXT_ENTRY = "text_entry"


@dataclass
class CanvasScale:
    """Mapping between on-screen canvas pixels and backing-store pixels.

    The backing store has the background image's size; the canvas may be
    displayed larger or smaller than that.
    """

    backing_width: float = 1
    backing_height: float = 1
    display_width: float = 1
    display_height: float = 1

    @property
    def sx(self) -> float:
        return self.backing_width / self.display_width if self.display_width else 1.0

    @property
    def sy(self) -> float:
        return self.backing_height / self.display_height if self.display_height else 1.0

    def to_canvas(self, x: float, y: float) -> Point:
        return x * self.sx, y * self.sy

    def to_screen(self, x: float, y: float) -> Point:
        return x / self.sx, y / self.sy


@dataclass
class TextOverlay:
    """Editable text region in screen space, positioned over the canvas."""

    x: float
    y: float
    style: TextStyle
    text: str = ""
    width: Optional[float] = None
    height: Optional[float] = None
    editing: bool = False

    def size(self) -> tuple[float, float]:
        """Reported widget size, or an estimate from the text."""
        if self.width is not None and self.height is not None:
            return self.width, self.height
        lines = self.text.split("\n")
        longest = max(len(line) for line in lines)
        width = longest * self.style.font_size * CHAR_WIDTH_FACTOR + 2 * TEXT_PADDING
        height = len(lines) * self.style.font_size * LINE_HEIGHT_FACTOR + 2 * TEXT_PADDING
        return width, height

    def contains(self, x: float, y: float) -> bool:
        width, height = self.size()
        return self.x <= x <= self.x + width and self.y <= y <= self.y + height


@dataclass
class ContextMenu:
    """Edit/Delete menu for one element, anchored at a screen point."""

    index: int
    x: float
    y: float
    can_edit: bool


@dataclass
class EditorSession:
    """Everything the controller tracks between events."""

    tool: str = POINTER
    style: Style = field(default_factory=Style)
    text_style: TextStyle = field(default_factory=TextStyle)
    scale: CanvasScale = field(default_factory=CanvasScale)
    state: EditorState = EditorState.IDLE
    discard_empty: bool = True

    overlay: Optional[TextOverlay] = None
    context_menu: Optional[ContextMenu] = None

    handle: Optional[int] = None
    drag_index: Optional[int] = None
    drag_start: Optional[Point] = None
    overlay_drag: Optional[tuple[Point, Point]] = None


class InteractionController:
    """Translates input events into AnnotationModel operations."""

    def __init__(
        self,
        model: Optional[AnnotationModel] = None,
        session: Optional[EditorSession] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.model = model or AnnotationModel()
        self.session = session or EditorSession()
        self.on_change = on_change

    @property
    def state(self) -> EditorState:
        return self.session.state

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()

    def set_canvas_size(self, display_width: float, display_height: float) -> None:
        """Record the canvas widget's current on-screen size."""
        self.session.scale.display_width = display_width
        self.session.scale.display_height = display_height

    # Pointer input

    def press(self, x: float, y: float) -> None:
        session = self.session
        if session.context_menu is not None:
            session.context_menu = None
            self._changed()

        if session.state == EditorState.TEXT_ENTRY:
            overlay = session.overlay
            if overlay.contains(x, y):
                session.overlay_drag = ((x, y), (overlay.x, overlay.y))
            else:
                # The press only closes the overlay; it starts nothing new
                self.finalize_text()
            return

        if session.state != EditorState.IDLE:
            return

        point = session.scale.to_canvas(x, y)

        if session.tool == POINTER:
            index = self.model.hit_test(point)
            if index is None:
                return
            self.model.begin_move(index)
            session.drag_index = index
            session.drag_start = point
            session.state = EditorState.DRAGGING_ELEMENT
            return

        if session.tool == TEXT:
            self.open_text_overlay(x, y)
            return

        session.handle = self.model.begin_element(session.tool, point, copy.copy(session.style))
        session.state = EditorState.DRAWING
        self._changed()

    def press_elsewhere(self) -> None:
        """A press outside the canvas, the overlay and the tool controls."""
        self.session.context_menu = None
        if self.session.state == EditorState.TEXT_ENTRY:
            self.finalize_text()

    def move(self, x: float, y: float) -> None:
        session = self.session

        if session.overlay_drag is not None:
            (start_x, start_y), (origin_x, origin_y) = session.overlay_drag
            session.overlay.x = origin_x + (x - start_x)
            session.overlay.y = origin_y + (y - start_y)
            self._changed()
            return

        point = session.scale.to_canvas(x, y)

        if session.state == EditorState.DRAGGING_ELEMENT:
            dx = point[0] - session.drag_start[0]
            dy = point[1] - session.drag_start[1]
            self.model.move_element(session.drag_index, (dx, dy))
            self._changed()
        elif session.state == EditorState.DRAWING:
            self.model.update_element(session.handle, point)
            self._changed()

    def release(self, x: float, y: float) -> None:
        session = self.session

        if session.overlay_drag is not None:
            session.overlay_drag = None
            return

        if session.state == EditorState.DRAGGING_ELEMENT:
            self.move(x, y)
            self.model.end_move()
            session.drag_index = None
            session.drag_start = None
            session.state = EditorState.IDLE
            self._changed()
        elif session.state == EditorState.DRAWING:
            self.model.commit_element(session.handle, discard_empty=session.discard_empty)
            session.handle = None
            session.state = EditorState.IDLE
            self._changed()

    def double_press(self, x: float, y: float) -> Optional[ContextMenu]:
        """Open the context menu for the element under the pointer."""
        session = self.session
        if session.tool != POINTER or session.state != EditorState.IDLE:
            return None

        index = self.model.hit_test(session.scale.to_canvas(x, y))
        if index is None:
            session.context_menu = None
        else:
            element = self.model.elements[index]
            session.context_menu = ContextMenu(index, x, y, can_edit=isinstance(element, TextBox))
        self._changed()
        return session.context_menu

    def cursor_at(self, x: float, y: float) -> str:
        """Name of the pointer cursor to show over the canvas."""
        tool = self.session.tool
        if tool == TEXT:
            return "text"
        if tool != POINTER:
            return "crosshair"
        if self.session.state == EditorState.DRAGGING_ELEMENT:
            return "move"
        if self.model.hit_test(self.session.scale.to_canvas(x, y)) is not None:
            return "move"
        return "default"

    # Keyboard input

    def key(self, name: str, shift: bool = False, ctrl: bool = False) -> bool:
        """Handle a key press. Returns True when the key was consumed."""
        if self.session.state == EditorState.TEXT_ENTRY:
            if name == "Enter" and not shift:
                self.finalize_text()
                return True
            if name == "Escape":
                self.cancel_text()
                return True
            return False

        if ctrl and name.lower() == "z":
            return self.redo() if shift else self.undo()
        if ctrl and name.lower() == "y":
            return self.redo()
        if name == "Escape" and self.session.context_menu is not None:
            self.hide_context_menu()
            return True
        return False

    # Text entry

    def open_text_overlay(
        self,
        x: float,
        y: float,
        text: str = "",
        style: Optional[TextStyle] = None,
        size: Optional[tuple[float, float]] = None,
        editing: bool = False,
    ) -> TextOverlay:
        session = self.session
        overlay = TextOverlay(
            x=x,
            y=y,
            style=copy.copy(style or session.text_style),
            text=text,
            editing=editing,
        )
        if size is not None:
            overlay.width, overlay.height = size
        session.overlay = overlay
        session.state = EditorState.TEXT_ENTRY
        self._changed()
        return overlay

    def set_overlay_text(self, text: str) -> None:
        if self.session.overlay is not None:
            self.session.overlay.text = text

    def resize_overlay(self, width: float, height: float) -> None:
        if self.session.overlay is not None:
            self.session.overlay.width = width
            self.session.overlay.height = height

    def _close_overlay(self) -> None:
        self.session.overlay = None
        self.session.overlay_drag = None
        self.session.state = EditorState.IDLE

    def _drop_edited(self, overlay: TextOverlay) -> None:
        # The lifted box is gone for good; record that so undo brings it back
        if overlay.editing:
            self.model.history.commit(self.model.elements)

    def finalize_text(self) -> Optional[int]:
        """Commit the overlay's text as a TextBox, or drop it when blank.

        Returns:
            Index of the new element, or None if nothing was committed
        """
        overlay = self.session.overlay
        if overlay is None:
            return None

        scale = self.session.scale
        width, height = overlay.size()
        x, y = scale.to_canvas(overlay.x, overlay.y)
        style = overlay.style
        element = TextBox(
            x=x,
            y=y,
            w=width * scale.sx,
            h=height * scale.sy,
            text=overlay.text,
            color=style.color,
            font_size=style.font_size,
            font_family=style.font_family,
            filled=style.filled,
            bordered=style.bordered,
        )
        self._close_overlay()

        try:
            index = self.model.add_text(element)
        except EmptyInput:
            log.debug("Blank text discarded")
            self._drop_edited(overlay)
            self._changed()
            return None

        self._changed()
        return index

    def cancel_text(self) -> None:
        """Close the overlay without committing its text."""
        overlay = self.session.overlay
        if overlay is None:
            return
        self._close_overlay()
        self._drop_edited(overlay)
        self._changed()

    # Context menu

    def hide_context_menu(self) -> None:
        self.session.context_menu = None
        self._changed()

    def context_delete(self) -> None:
        menu = self.session.context_menu
        if menu is None:
            return
        self.model.delete_element(menu.index)
        self.hide_context_menu()

    def context_edit(self) -> Optional[TextOverlay]:
        """Lift a text box off the canvas back into the overlay."""
        menu = self.session.context_menu
        if menu is None or not menu.can_edit:
            return None
        self.session.context_menu = None

        element = self.model.remove_element(menu.index)
        style = TextStyle(
            color=element.color,
            font_size=element.font_size,
            font_family=element.font_family,
            filled=element.filled,
            bordered=element.bordered,
        )
        # Later text picks up the edited box's settings
        self.session.text_style = copy.copy(style)
        self.session.style.color = element.color
        self.session.tool = TEXT

        scale = self.session.scale
        x, y = scale.to_screen(element.x, element.y)
        size = (element.w / scale.sx, element.h / scale.sy)
        return self.open_text_overlay(
            x, y, text=element.text, style=style, size=size, editing=True
        )

    # Tools and style

    def set_tool(self, tool: str) -> None:
        if tool not in TOOLS:
            raise ValueError(f"Unknown tool: {tool}")
        if self.session.state == EditorState.TEXT_ENTRY:
            self.finalize_text()
        self.session.tool = tool
        self._changed()

    def _restyle_overlay(self, **changes) -> None:
        overlay = self.session.overlay
        if overlay is not None:
            for key, value in changes.items():
                setattr(overlay.style, key, value)
            self._changed()

    def set_color(self, color: str) -> None:
        self.session.style.color = color
        self.session.text_style.color = color
        self._restyle_overlay(color=color)

    def set_stroke_width(self, width: float) -> None:
        self.session.style.stroke_width = width

    def set_font_size(self, size: float) -> None:
        self.session.text_style.font_size = size
        self._restyle_overlay(font_size=size)

    def set_font_family(self, family: str) -> None:
        self.session.text_style.font_family = family
        self._restyle_overlay(font_family=family)

    def set_filled(self, filled: bool) -> None:
        self.session.text_style.filled = filled
        self._restyle_overlay(filled=filled)

    def set_bordered(self, bordered: bool) -> None:
        self.session.text_style.bordered = bordered
        self._restyle_overlay(bordered=bordered)

    # History

    def undo(self) -> bool:
        if self.session.state != EditorState.IDLE:
            return False
        self.session.context_menu = None
        changed = self.model.undo()
        if changed:
            self._changed()
        return changed

    def redo(self) -> bool:
        if self.session.state != EditorState.IDLE:
            return False
        self.session.context_menu = None
        changed = self.model.redo()
        if changed:
            self._changed()
        return changed
