"""Cairo rendering of the annotated canvas."""

import math
from typing import Iterable, Optional

import cairo

from . import codec
from .elements import (
    HIGHLIGHTER,
    HIGHLIGHTER_ALPHA,
    HIGHLIGHTER_WIDTH_FACTOR,
    LINE_HEIGHT_FACTOR,
    TEXT_PADDING,
    Arrow,
    Element,
    Ellipse,
    Freehand,
    Rectangle,
    TextBox,
)

ARROW_HEAD_ANGLE = math.pi / 6
TEXT_BORDER_WIDTH = 2


def parse_color(color: str) -> tuple[float, float, float]:
    """Convert '#rrggbb' or '#rgb' into cairo RGB components."""
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        raise ValueError(f"Invalid color: {color}")
    return tuple(int(value[i:i + 2], 16) / 255 for i in (0, 2, 4))


def arrow_head_length(stroke_width: float) -> float:
    return 10 + stroke_width * 1.5


def render(
    cr: cairo.Context,
    background: Optional[cairo.ImageSurface],
    elements: Iterable[Element],
    in_progress: Optional[Element] = None,
) -> None:
    """Redraw the whole canvas: background, committed elements, then the
    element under construction on top."""
    cr.save()
    cr.set_operator(cairo.OPERATOR_CLEAR)
    cr.paint()
    cr.restore()

    if background is not None:
        cr.set_source_surface(background, 0, 0)
        cr.paint()

    for element in elements:
        draw_element(cr, element)

    if in_progress is not None:
        draw_element(cr, in_progress)


def draw_element(cr: cairo.Context, element: Element) -> None:
    if not isinstance(element, (Freehand, Rectangle, Ellipse, Arrow, TextBox)):
        raise TypeError(f"Unknown element: {element!r}")

    cr.save()
    cr.new_path()
    cr.set_line_cap(cairo.LINE_CAP_ROUND)
    cr.set_line_join(cairo.LINE_JOIN_ROUND)

    if isinstance(element, TextBox):
        _draw_text_box(cr, element)
    else:
        r, g, b = parse_color(element.color)
        if isinstance(element, Freehand) and element.style == HIGHLIGHTER:
            cr.set_source_rgba(r, g, b, HIGHLIGHTER_ALPHA)
            cr.set_line_width(element.stroke_width * HIGHLIGHTER_WIDTH_FACTOR)
        else:
            cr.set_source_rgb(r, g, b)
            cr.set_line_width(element.stroke_width)

        if isinstance(element, Rectangle):
            cr.rectangle(element.x, element.y, element.w, element.h)
            cr.stroke()
        elif isinstance(element, Ellipse):
            cr.arc(element.cx, element.cy, element.r, 0, 2 * math.pi)
            cr.stroke()
        elif isinstance(element, Arrow):
            _draw_arrow(cr, element)
        else:
            _draw_freehand(cr, element.points)

    cr.restore()


def _draw_arrow(cr: cairo.Context, arrow: Arrow) -> None:
    head = arrow_head_length(arrow.stroke_width)
    angle = math.atan2(arrow.y2 - arrow.y1, arrow.x2 - arrow.x1)

    cr.move_to(arrow.x1, arrow.y1)
    cr.line_to(arrow.x2, arrow.y2)
    cr.stroke()

    for side in (-ARROW_HEAD_ANGLE, ARROW_HEAD_ANGLE):
        cr.move_to(arrow.x2, arrow.y2)
        cr.line_to(
            arrow.x2 - head * math.cos(angle + side),
            arrow.y2 - head * math.sin(angle + side),
        )
    cr.stroke()


def _quadratic_to(cr: cairo.Context, cx: float, cy: float, x: float, y: float) -> None:
    # cairo only has cubic curves; raise the quadratic's degree
    x0, y0 = cr.get_current_point()
    cr.curve_to(
        x0 + 2 / 3 * (cx - x0),
        y0 + 2 / 3 * (cy - y0),
        x + 2 / 3 * (cx - x),
        y + 2 / 3 * (cy - y),
        x,
        y,
    )


def _draw_freehand(cr: cairo.Context, points: list) -> None:
    if not points:
        return

    cr.move_to(*points[0])
    if len(points) < 3:
        cr.line_to(*points[-1])
    else:
        # Curve through the midpoints of consecutive points
        for i in range(1, len(points) - 2):
            mid_x = (points[i][0] + points[i + 1][0]) / 2
            mid_y = (points[i][1] + points[i + 1][1]) / 2
            _quadratic_to(cr, points[i][0], points[i][1], mid_x, mid_y)
        _quadratic_to(cr, points[-2][0], points[-2][1], points[-1][0], points[-1][1])
    cr.stroke()


def _draw_text_box(cr: cairo.Context, box: TextBox) -> None:
    r, g, b = parse_color(box.color)

    if box.filled:
        cr.set_source_rgb(1, 1, 1)
        cr.rectangle(box.x, box.y, box.w, box.h)
        cr.fill()

    if box.bordered:
        cr.set_line_width(TEXT_BORDER_WIDTH)
        cr.set_source_rgb(r, g, b)
        cr.rectangle(box.x, box.y, box.w, box.h)
        cr.stroke()

    cr.select_font_face(box.font_family, cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
    cr.set_font_size(box.font_size)
    cr.set_source_rgb(r, g, b)

    # Glyphs hang from the top of each line, not from the baseline
    ascent = cr.font_extents()[0]
    line_height = box.font_size * LINE_HEIGHT_FACTOR
    for index, line in enumerate(box.lines):
        cr.move_to(box.x + TEXT_PADDING, box.y + TEXT_PADDING + index * line_height + ascent)
        cr.show_text(line)


def flatten(
    background: cairo.ImageSurface,
    elements: Iterable[Element],
) -> cairo.ImageSurface:
    """Draw background and elements into a new bitmap for export."""
    image = codec.new_bitmap(background.get_width(), background.get_height())
    render(cairo.Context(image), background, elements)
    image.flush()
    return image
