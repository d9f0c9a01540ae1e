"""Cairo drawing helpers for the selection overlay."""

import cairo


def draw_selection_overlay(
    cr: cairo.Context,
    x: float,
    y: float,
    width: float,
    height: float,
    view_width: float,
    view_height: float,
):
    """Dim everything outside the selection and outline it with a dashed
    black/white border that stays visible on any background."""
    cr.set_source_rgba(0, 0, 0, 0.35)
    cr.rectangle(0, 0, view_width, y)  # Top
    cr.rectangle(0, y, x, height)  # Left
    cr.rectangle(x + width, y, view_width - (x + width), height)  # Right
    cr.rectangle(0, y + height, view_width, view_height - (y + height))  # Bottom
    cr.fill()

    cr.set_line_width(2)
    cr.rectangle(x, y, width, height)
    cr.set_source_rgb(1, 1, 1)
    cr.set_dash([])
    cr.stroke_preserve()
    cr.set_source_rgb(0, 0, 0)
    cr.set_dash([6, 6])
    cr.stroke()
    cr.set_dash([])


def draw_dimension_text(cr: cairo.Context, x: float, y: float, width: float, height: float, label: str):
    """Draw the selection size in the center of a selection."""
    cr.select_font_face("monospace", cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_BOLD)
    cr.set_font_size(14)
    extents = cr.text_extents(label)

    text_x = x + width / 2 - extents.width / 2
    text_y = y + height / 2 + extents.height / 2

    cr.set_source_rgba(0, 0, 0, 0.8)
    cr.rectangle(
        text_x - 5,
        text_y - extents.height - 5,
        extents.width + 10,
        extents.height + 10,
    )
    cr.fill()

    cr.set_source_rgb(1, 1, 1)
    cr.move_to(text_x, text_y)
    cr.show_text(label)


def draw_instructions(cr: cairo.Context, x: int = 20, y: int = 30):
    """Draw help instructions in the corner."""
    instructions = [
        "Drag: Select area",
        "Enter: Confirm selection",
        "ESC/Right-click: Cancel",
    ]

    cr.select_font_face("sans-serif", cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
    cr.set_font_size(14)

    for instruction in instructions:
        extents = cr.text_extents(instruction)
        cr.set_source_rgba(0, 0, 0, 0.7)
        cr.rectangle(x - 5, y - extents.height - 2, extents.width + 10, extents.height + 6)
        cr.fill()
        cr.set_source_rgb(1, 1, 1)
        cr.move_to(x, y)
        cr.show_text(instruction)
        y += 22
