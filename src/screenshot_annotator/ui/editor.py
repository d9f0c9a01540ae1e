"""Annotation editor window."""

import logging
from typing import Optional

import cairo
import gi
gi.require_version("Gtk", "3.0")
gi.require_version("Gdk", "3.0")
from gi.repository import Gtk, Gdk

from .. import codec
from ..config import Config, get_config
from ..controller import (
    POINTER,
    TEXT,
    CanvasScale,
    EditorSession,
    EditorState,
    InteractionController,
)
from ..elements import Style, TextStyle
from ..model import AnnotationModel
from ..output import OutputOptions, export_annotated
from ..renderer import render
from ..store import PendingImageStore

log = logging.getLogger(__name__)

TOOL_LABELS = [
    (POINTER, "Move"),
    ("pen", "Pen"),
    ("highlighter", "Highlight"),
    ("rect", "Rectangle"),
    ("ellipse", "Circle"),
    ("arrow", "Arrow"),
    (TEXT, "Text"),
]
SWATCHES = ["#ef4444", "#f59e0b", "#22c55e", "#3b82f6", "#000000", "#ffffff"]
FONT_FAMILIES = ["sans-serif", "serif", "monospace"]

# Share of the monitor the canvas may take before it is shown scaled down
MAX_SCREEN_FRACTION = 0.85


def _overlay_css(style: TextStyle) -> bytes:
    background = "#ffffff" if style.filled else "transparent"
    if style.bordered:
        border = f"2px solid {style.color}"
    else:
        border = "1px dashed #3b82f6"
    return (
        f"textview {{ font-family: {style.font_family}; font-size: {style.font_size}px;"
        f" border: {border}; background-color: {background}; padding: 8px; }}\n"
        f"textview text {{ color: {style.color}; background-color: {background}; }}\n"
    ).encode()


def _fit_factor(width: int, height: int) -> float:
    display = Gdk.Display.get_default()
    monitor = (display.get_primary_monitor() or display.get_monitor(0)) if display else None
    if monitor is None:
        return 1.0
    area = monitor.get_workarea()
    return min(
        1.0,
        area.width * MAX_SCREEN_FRACTION / width,
        area.height * MAX_SCREEN_FRACTION / height,
    )


class EditorWindow(Gtk.Window):
    """Canvas, toolbar and property bar around one InteractionController."""

    def __init__(self, background: cairo.ImageSurface, config: Optional[Config] = None):
        super().__init__(title="Annotate Screenshot")
        self.config = config or get_config()
        self.background = background

        width = background.get_width()
        height = background.get_height()
        session = EditorSession(
            style=Style(self.config.stroke_color, self.config.stroke_width),
            text_style=TextStyle(
                color=self.config.stroke_color,
                font_size=self.config.font_size,
                font_family=self.config.font_family,
            ),
            scale=CanvasScale(width, height, width, height),
        )
        self.model = AnnotationModel()
        self.controller = InteractionController(self.model, session, on_change=self._on_change)

        self._syncing = False
        self._shown_overlay = None

        root = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        root.pack_start(self._build_toolbar(), False, False, 0)
        root.pack_start(self._build_properties(), False, False, 0)

        # Canvas with the text entry overlay on top
        self.drawing_area = Gtk.DrawingArea()
        factor = _fit_factor(width, height)
        self.drawing_area.set_size_request(int(width * factor), int(height * factor))
        self.drawing_area.set_halign(Gtk.Align.START)
        self.drawing_area.set_valign(Gtk.Align.START)
        self.drawing_area.set_events(
            Gdk.EventMask.BUTTON_PRESS_MASK
            | Gdk.EventMask.BUTTON_RELEASE_MASK
            | Gdk.EventMask.POINTER_MOTION_MASK
        )
        self.drawing_area.connect("draw", self._on_draw)
        self.drawing_area.connect("size-allocate", self._on_canvas_allocate)
        self.drawing_area.connect("button-press-event", self._on_button_press)
        self.drawing_area.connect("button-release-event", self._on_button_release)
        self.drawing_area.connect("motion-notify-event", self._on_motion)

        self.text_view = Gtk.TextView()
        self.text_view.set_halign(Gtk.Align.START)
        self.text_view.set_valign(Gtk.Align.START)
        self.text_view.set_no_show_all(True)
        self.text_view.connect("key-press-event", self._on_text_key)
        self.text_view.connect("size-allocate", self._on_text_allocate)
        self.text_view.get_buffer().connect("changed", self._on_text_changed)
        self._text_css = Gtk.CssProvider()
        self.text_view.get_style_context().add_provider(
            self._text_css, Gtk.STYLE_PROVIDER_PRIORITY_USER
        )

        overlay = Gtk.Overlay()
        overlay.add(self.drawing_area)
        overlay.add_overlay(self.text_view)

        scroller = Gtk.ScrolledWindow()
        scroller.add(overlay)
        root.pack_start(scroller, True, True, 0)

        self.status = Gtk.Label(xalign=0)
        root.pack_start(self.status, False, False, 0)

        self.add(root)
        self.connect("key-press-event", self._on_key_press)
        self.connect("button-press-event", self._on_window_press)
        self.connect("destroy", Gtk.main_quit)
        self.set_default_size(
            min(int(width * factor) + 40, 1600),
            min(int(height * factor) + 160, 1200),
        )
        self.show_all()
        self._sync_properties()

    # Construction

    def _build_toolbar(self) -> Gtk.Box:
        bar = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        self.tool_buttons: dict[str, Gtk.RadioButton] = {}
        group = None
        for tool, label in TOOL_LABELS:
            button = Gtk.RadioButton.new_with_label_from_widget(group, label)
            button.set_mode(False)
            button.connect("toggled", self._on_tool_toggled, tool)
            bar.pack_start(button, False, False, 0)
            self.tool_buttons[tool] = button
            group = group or button

        for label, handler in (
            ("Close", lambda _b: self.destroy()),
            ("Save", self._on_download),
            ("Redo", lambda _b: self.controller.redo()),
            ("Undo", lambda _b: self.controller.undo()),
        ):
            button = Gtk.Button(label=label)
            button.connect("clicked", handler)
            bar.pack_end(button, False, False, 0)
        return bar

    def _build_properties(self) -> Gtk.Box:
        self.properties = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=6)

        for color in SWATCHES:
            swatch = Gtk.Button()
            swatch.set_size_request(24, 24)
            css = Gtk.CssProvider()
            css.load_from_data(f"button {{ background: {color}; }}".encode())
            swatch.get_style_context().add_provider(css, Gtk.STYLE_PROVIDER_PRIORITY_USER)
            swatch.connect("clicked", lambda _b, c=color: self.controller.set_color(c))
            self.properties.pack_start(swatch, False, False, 0)

        self.draw_section = Gtk.Box(spacing=4)
        self.draw_section.pack_start(Gtk.Label(label="Size"), False, False, 0)
        self.stroke_size = Gtk.SpinButton.new_with_range(1, 30, 1)
        self.stroke_size.connect(
            "value-changed",
            lambda s: self._unless_syncing(self.controller.set_stroke_width, s.get_value_as_int()),
        )
        self.draw_section.pack_start(self.stroke_size, False, False, 0)
        self.properties.pack_start(self.draw_section, False, False, 0)

        self.text_section = Gtk.Box(spacing=4)
        self.font_family = Gtk.ComboBoxText()
        for family in FONT_FAMILIES:
            self.font_family.append(family, family)
        self.font_family.connect("changed", self._on_font_family)
        self.font_size = Gtk.SpinButton.new_with_range(8, 96, 1)
        self.font_size.connect(
            "value-changed", lambda s: self._unless_syncing(self.controller.set_font_size, s.get_value_as_int())
        )
        self.text_fill = Gtk.CheckButton(label="Background")
        self.text_fill.connect(
            "toggled", lambda b: self._unless_syncing(self.controller.set_filled, b.get_active())
        )
        self.text_border = Gtk.CheckButton(label="Border")
        self.text_border.connect(
            "toggled", lambda b: self._unless_syncing(self.controller.set_bordered, b.get_active())
        )
        for widget in (self.font_family, self.font_size, self.text_fill, self.text_border):
            self.text_section.pack_start(widget, False, False, 0)
        self.properties.pack_start(self.text_section, False, False, 0)
        return self.properties

    # Model -> widgets

    def _unless_syncing(self, setter, value):
        if not self._syncing:
            setter(value)

    def _on_change(self):
        self._sync_overlay()
        self._sync_properties()
        self.drawing_area.queue_draw()

    def _sync_properties(self):
        session = self.controller.session
        self._syncing = True
        try:
            button = self.tool_buttons[session.tool]
            if not button.get_active():
                button.set_active(True)
            self.stroke_size.set_value(session.style.stroke_width)
            self.font_family.set_active_id(session.text_style.font_family)
            self.font_size.set_value(session.text_style.font_size)
            self.text_fill.set_active(session.text_style.filled)
            self.text_border.set_active(session.text_style.bordered)
        finally:
            self._syncing = False

        self.properties.set_visible(session.tool != POINTER)
        self.draw_section.set_visible(session.tool != TEXT)
        self.text_section.set_visible(session.tool == TEXT)

    def _sync_overlay(self):
        overlay = self.controller.session.overlay
        if overlay is None:
            if self._shown_overlay is not None:
                self._shown_overlay = None
                self.text_view.hide()
                self.drawing_area.grab_focus()
            return

        self.text_view.set_margin_start(int(overlay.x))
        self.text_view.set_margin_top(int(overlay.y))
        self._text_css.load_from_data(_overlay_css(overlay.style))

        if overlay is not self._shown_overlay:
            self._shown_overlay = overlay
            buffer = self.text_view.get_buffer()
            buffer.set_text(overlay.text)
            if overlay.width is not None:
                self.text_view.set_size_request(int(overlay.width), int(overlay.height))
            else:
                self.text_view.set_size_request(-1, -1)
            self.text_view.show()
            self.text_view.grab_focus()
            if overlay.editing:
                buffer.select_range(buffer.get_start_iter(), buffer.get_end_iter())

    # Canvas events

    def _on_draw(self, widget, cr):
        scale = self.controller.session.scale
        cr.scale(1 / scale.sx, 1 / scale.sy)
        render(cr, self.background, self.model.elements, self.model.in_progress)
        return False

    def _on_canvas_allocate(self, widget, allocation):
        self.controller.set_canvas_size(allocation.width, allocation.height)

    def _on_button_press(self, widget, event):
        if event.button != 1:
            return False
        if event.type == Gdk.EventType._2BUTTON_PRESS:
            menu = self.controller.double_press(event.x, event.y)
            if menu is not None:
                self._popup_context_menu(menu.can_edit, event)
            return True
        if event.type == Gdk.EventType.BUTTON_PRESS:
            self.controller.press(event.x, event.y)
        return True

    def _on_motion(self, widget, event):
        self.controller.move(event.x, event.y)
        window = widget.get_window()
        if window is not None:
            name = self.controller.cursor_at(event.x, event.y)
            window.set_cursor(Gdk.Cursor.new_from_name(window.get_display(), name))
        return True

    def _on_button_release(self, widget, event):
        if event.button == 1:
            self.controller.release(event.x, event.y)
        return True

    def _on_window_press(self, widget, event):
        # Presses that reach the window missed the canvas and every control
        self.controller.press_elsewhere()
        return False

    def _popup_context_menu(self, can_edit: bool, event):
        menu = Gtk.Menu()
        if can_edit:
            edit = Gtk.MenuItem(label="Edit")
            edit.connect("activate", lambda _i: self.controller.context_edit())
            menu.append(edit)
        delete = Gtk.MenuItem(label="Delete")
        delete.connect("activate", lambda _i: self.controller.context_delete())
        menu.append(delete)
        menu.show_all()
        menu.attach_to_widget(self.drawing_area, None)
        menu.popup_at_pointer(event)

    # Keyboard and text events

    def _on_key_press(self, widget, event):
        if self.text_view.has_focus():
            return False
        name = Gdk.keyval_name(event.keyval) or ""
        if name == "Return":
            name = "Enter"
        shift = bool(event.state & Gdk.ModifierType.SHIFT_MASK)
        ctrl = bool(event.state & Gdk.ModifierType.CONTROL_MASK)
        return self.controller.key(name, shift=shift, ctrl=ctrl)

    def _on_text_key(self, widget, event):
        shift = bool(event.state & Gdk.ModifierType.SHIFT_MASK)
        if event.keyval in (Gdk.KEY_Return, Gdk.KEY_KP_Enter):
            return self.controller.key("Enter", shift=shift)
        if event.keyval == Gdk.KEY_Escape:
            return self.controller.key("Escape")
        return False

    def _on_text_changed(self, buffer):
        start, end = buffer.get_bounds()
        self.controller.set_overlay_text(buffer.get_text(start, end, False))

    def _on_text_allocate(self, widget, allocation):
        if self.controller.state == EditorState.TEXT_ENTRY:
            self.controller.resize_overlay(allocation.width, allocation.height)

    # Toolbar events

    def _on_tool_toggled(self, button, tool):
        if button.get_active() and not self._syncing:
            self.controller.set_tool(tool)

    def _on_font_family(self, combo):
        family = combo.get_active_id()
        if family and not self._syncing:
            self.controller.set_font_family(family)

    def _on_download(self, button):
        self.controller.press_elsewhere()
        try:
            result = export_annotated(
                self.background, self.model.elements, OutputOptions(), self.config
            )
        except (OSError, ValueError) as e:
            log.error("Export failed: %s", e)
            self.status.set_text(f"Failed: {e}")
            return
        self.status.set_text(f"Saved to {result.path}")


def run_editor(background: cairo.ImageSurface, config: Optional[Config] = None) -> int:
    """Open the editor on ``background`` and block until it is closed.

    Returns:
        Exit code (0 for success)
    """
    config = config or get_config()
    EditorWindow(background, config)
    Gtk.main()
    return 0


def editor_handler(store: PendingImageStore, config: Optional[Config] = None):
    """Build the ``openEditor`` receiver that edits the pending image."""

    def open_editor(message: dict) -> Optional[dict]:
        data = store.take()
        if data is None:
            log.debug("No pending image to edit")
            return None
        run_editor(codec.decode(data), config)
        return None

    return open_editor
