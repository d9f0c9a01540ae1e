"""Interactive marquee selection for custom-region capture."""

import logging
from typing import Optional

import cairo
import gi
gi.require_version("Gtk", "3.0")
gi.require_version("Gdk", "3.0")
from gi.repository import Gtk, Gdk

from .. import codec
from ..capture import Surface
from ..messaging import MessageRouter
from ..stitcher import SelectionRect, fit_within, view_selection
from .drawing import draw_dimension_text, draw_instructions, draw_selection_overlay

log = logging.getLogger(__name__)


class SelectionOverlay(Gtk.Window):
    """Full-screen window showing a frozen viewport for drag selection.

    The snapshot is letterboxed at one uniform scale. The chosen rectangle
    is reported relative to the drawn image, with its drawn width as
    reference width.
    """

    def __init__(self, snapshot: cairo.ImageSurface):
        super().__init__(title="Select Area")
        self.snapshot = snapshot
        self.result: Optional[SelectionRect] = None

        self.set_decorated(False)
        self.set_skip_taskbar_hint(True)
        self.set_skip_pager_hint(True)

        self.drawing_area = Gtk.DrawingArea()
        self.drawing_area.connect("draw", self._on_draw)
        self.add(self.drawing_area)

        # Selection state
        self.selecting = False
        self.start_x: Optional[float] = None
        self.start_y: Optional[float] = None
        self.current_x = 0.0
        self.current_y = 0.0

        self.drawing_area.set_events(
            Gdk.EventMask.BUTTON_PRESS_MASK
            | Gdk.EventMask.BUTTON_RELEASE_MASK
            | Gdk.EventMask.POINTER_MOTION_MASK
        )
        self.drawing_area.connect("button-press-event", self._on_button_press)
        self.drawing_area.connect("button-release-event", self._on_button_release)
        self.drawing_area.connect("motion-notify-event", self._on_motion)
        self.connect("key-press-event", self._on_key_press)
        self.connect("realize", self._on_realize)

        self.fullscreen()
        self.show_all()

    def _on_realize(self, widget):
        window = self.get_window()
        if window:
            cursor = Gdk.Cursor.new_for_display(window.get_display(), Gdk.CursorType.CROSSHAIR)
            window.set_cursor(cursor)

    def _view_size(self) -> tuple[int, int]:
        allocation = self.drawing_area.get_allocation()
        return allocation.width, allocation.height

    def _selection(self) -> tuple[float, float, float, float]:
        x = min(self.start_x, self.current_x)
        y = min(self.start_y, self.current_y)
        w = abs(self.current_x - self.start_x)
        h = abs(self.current_y - self.start_y)
        return x, y, w, h

    def _on_draw(self, widget, cr):
        view_width, view_height = self._view_size()

        scale, left, top = fit_within(
            self.snapshot.get_width(), self.snapshot.get_height(), view_width, view_height
        )
        cr.set_source_rgb(0, 0, 0)
        cr.paint()

        # Frozen viewport, letterboxed in the overlay
        cr.save()
        cr.translate(left, top)
        cr.scale(scale, scale)
        cr.set_source_surface(self.snapshot, 0, 0)
        cr.paint()
        cr.restore()

        if self.selecting and self.start_x is not None:
            x, y, w, h = self._selection()
            draw_selection_overlay(cr, x, y, w, h, view_width, view_height)
            draw_dimension_text(cr, x, y, w, h, f"{int(w)} x {int(h)}")
        else:
            draw_instructions(cr)

        return False

    def _on_button_press(self, widget, event):
        if event.button == 3:  # Right-click cancels
            self._finish(None)
            return True

        if event.button == 1:
            self.selecting = True
            self.start_x = self.current_x = event.x
            self.start_y = self.current_y = event.y
            widget.queue_draw()
        return True

    def _on_motion(self, widget, event):
        self.current_x = event.x
        self.current_y = event.y
        if self.selecting:
            widget.queue_draw()
        return True

    def _on_button_release(self, widget, event):
        if event.button != 1 or not self.selecting:
            return True
        self.current_x = event.x
        self.current_y = event.y
        self._confirm()
        return True

    def _on_key_press(self, widget, event):
        if event.keyval == Gdk.KEY_Escape:
            self._finish(None)
        elif event.keyval == Gdk.KEY_Return and self.selecting:
            self._confirm()
        return True

    def _confirm(self):
        self.selecting = False
        x, y, w, h = self._selection()
        snapshot_size = (self.snapshot.get_width(), self.snapshot.get_height())
        rect = view_selection(x, y, w, h, snapshot_size, self._view_size())
        self._finish(None if rect.is_empty else rect)

    def _finish(self, rect: Optional[SelectionRect]):
        self.result = rect
        self.hide()
        self.destroy()
        Gtk.main_quit()


def select_region(snapshot: cairo.ImageSurface) -> Optional[SelectionRect]:
    """Run the selection overlay until the user confirms or cancels."""
    overlay = SelectionOverlay(snapshot)
    Gtk.main()

    # Let the overlay disappear from screen before the real snapshot
    while Gtk.events_pending():
        Gtk.main_iteration()
    return overlay.result


def selection_handler(router: MessageRouter, surface: Surface):
    """Build the ``startSelection`` receiver for a surface."""

    def start(message: dict) -> Optional[dict]:
        snapshot = codec.decode(surface.capture_viewport())
        rect = select_region(snapshot)
        if rect is None:
            log.info("Selection cancelled")
            return {"cancelled": True}
        log.debug("Selected %s", rect)
        return router.send({"action": "regionSelected", "rect": rect.to_dict()})

    return start
