"""Annotation element types and their geometry.

Every element lives in the background image's pixel space. The set of
element types is closed: functions that dispatch on the type end with a
``TypeError`` so a new kind cannot be silently skipped.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Union

HIT_TOLERANCE = 10
HIGHLIGHTER_ALPHA = 0.4
HIGHLIGHTER_WIDTH_FACTOR = 2
TEXT_PADDING = 8
LINE_HEIGHT_FACTOR = 1.2

PEN = "pen"
HIGHLIGHTER = "highlighter"
FREEHAND_STYLES = (PEN, HIGHLIGHTER)

Point = tuple[float, float]


@dataclass
class Style:
    """Stroke settings for shapes and freehand strokes."""

    color: str = "#ef4444"
    stroke_width: float = 4


@dataclass
class TextStyle:
    """Font and box settings for text boxes."""

    color: str = "#ef4444"
    font_size: float = 24
    font_family: str = "sans-serif"
    filled: bool = False
    bordered: bool = False


@dataclass
class Freehand:
    points: list[Point] = field(default_factory=list)
    color: str = "#ef4444"
    stroke_width: float = 4
    style: str = PEN

    def __post_init__(self):
        if self.style not in FREEHAND_STYLES:
            raise ValueError(f"Unknown freehand style: {self.style}")


@dataclass
class Rectangle:
    x: float
    y: float
    w: float = 0
    h: float = 0
    color: str = "#ef4444"
    stroke_width: float = 4


@dataclass
class Ellipse:
    cx: float
    cy: float
    r: float = 0
    color: str = "#ef4444"
    stroke_width: float = 4


@dataclass
class Arrow:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str = "#ef4444"
    stroke_width: float = 4


@dataclass
class TextBox:
    x: float
    y: float
    w: float
    h: float
    text: str
    color: str = "#ef4444"
    font_size: float = 24
    font_family: str = "sans-serif"
    filled: bool = False
    bordered: bool = False

    @property
    def lines(self) -> list[str]:
        return self.text.split("\n")


Element = Union[Freehand, Rectangle, Ellipse, Arrow, TextBox]


def normalized_bounds(x: float, y: float, w: float, h: float) -> tuple[float, float, float, float]:
    """Flip a rectangle with negative width/height so w and h are positive."""
    if w < 0:
        x, w = x + w, -w
    if h < 0:
        y, h = y + h, -h
    return x, y, w, h


def distance_to_segment(
    px: float, py: float, x1: float, y1: float, x2: float, y2: float
) -> float:
    """Minimum distance from a point to a line segment.

    The point is projected onto the segment's line, the projection parameter
    is clamped to [0, 1], and the distance to the clamped point is returned.
    """
    dx = x2 - x1
    dy = y2 - y1
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - x1, py - y1)

    t = ((px - x1) * dx + (py - y1) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (x1 + t * dx), py - (y1 + t * dy))


def contains(element: Element, x: float, y: float, tolerance: float = HIT_TOLERANCE) -> bool:
    """Whether a point hits an element.

    Rectangles and text boxes use their bounding box (edges inclusive).
    Strokes (ellipse ring, arrow shaft, freehand segments) count as hit
    within ``tolerance`` pixels.
    """
    if isinstance(element, (Rectangle, TextBox)):
        rx, ry, rw, rh = normalized_bounds(element.x, element.y, element.w, element.h)
        return rx <= x <= rx + rw and ry <= y <= ry + rh
    if isinstance(element, Ellipse):
        dist = math.hypot(x - element.cx, y - element.cy)
        return element.r - tolerance <= dist <= element.r + tolerance
    if isinstance(element, Arrow):
        return distance_to_segment(x, y, element.x1, element.y1, element.x2, element.y2) < tolerance
    if isinstance(element, Freehand):
        points = element.points
        for (x1, y1), (x2, y2) in zip(points, points[1:]):
            if distance_to_segment(x, y, x1, y1, x2, y2) < tolerance:
                return True
        return False
    raise TypeError(f"Unknown element: {element!r}")


def translated(element: Element, dx: float, dy: float) -> Element:
    """Return a copy of ``element`` moved by (dx, dy)."""
    if isinstance(element, (Rectangle, TextBox)):
        return replace(element, x=element.x + dx, y=element.y + dy)
    if isinstance(element, Ellipse):
        return replace(element, cx=element.cx + dx, cy=element.cy + dy)
    if isinstance(element, Arrow):
        return replace(
            element,
            x1=element.x1 + dx,
            y1=element.y1 + dy,
            x2=element.x2 + dx,
            y2=element.y2 + dy,
        )
    if isinstance(element, Freehand):
        return replace(element, points=[(px + dx, py + dy) for px, py in element.points])
    raise TypeError(f"Unknown element: {element!r}")


def is_empty(element: Element) -> bool:
    """Whether an element has zero extent and would draw nothing visible."""
    if isinstance(element, Rectangle):
        return element.w == 0 and element.h == 0
    if isinstance(element, Ellipse):
        return element.r == 0
    if isinstance(element, Arrow):
        return element.x1 == element.x2 and element.y1 == element.y2
    if isinstance(element, Freehand):
        return len(set(element.points)) <= 1
    if isinstance(element, TextBox):
        return not element.text.strip()
    raise TypeError(f"Unknown element: {element!r}")
