import math

import pytest

from screenshot_annotator.elements import (
    Arrow,
    Ellipse,
    Freehand,
    Rectangle,
    TextBox,
    contains,
    distance_to_segment,
    is_empty,
    normalized_bounds,
    translated,
)


def test_normalized_bounds_flips_negative_extent():
    assert normalized_bounds(100, 100, -40, -20) == (60, 80, 40, 20)
    assert normalized_bounds(10, 10, 5, 5) == (10, 10, 5, 5)


def test_rectangle_hit_uses_bounding_box_inclusive():
    rect = Rectangle(10, 10, 100, 50)
    assert contains(rect, 10, 10)
    assert contains(rect, 110, 60)
    assert contains(rect, 50, 30)
    assert not contains(rect, 111, 30)


def test_rectangle_drawn_backwards_still_hits():
    rect = Rectangle(110, 60, -100, -50)
    assert contains(rect, 50, 30)


def test_ellipse_hits_ring_not_center():
    ring = Ellipse(100, 100, 50)
    assert contains(ring, 150, 100)
    assert contains(ring, 100, 159)
    assert not contains(ring, 100, 100)
    assert not contains(ring, 161, 100)


def test_arrow_hits_within_tolerance_of_shaft():
    arrow = Arrow(0, 0, 100, 0)
    assert contains(arrow, 50, 9)
    assert not contains(arrow, 50, 10)
    # Beyond the end the distance is to the endpoint
    assert not contains(arrow, 115, 0)


def test_freehand_hits_any_segment():
    stroke = Freehand(points=[(0, 0), (100, 0), (100, 100)])
    assert contains(stroke, 100, 50)
    assert contains(stroke, 50, 5)
    assert not contains(stroke, 50, 50)


def test_single_point_freehand_never_hits():
    assert not contains(Freehand(points=[(5, 5)]), 5, 5)


def test_text_box_hit_uses_bounds():
    box = TextBox(10, 10, 80, 40, "Hi")
    assert contains(box, 20, 20)
    assert not contains(box, 100, 20)


def test_distance_to_segment_clamps_projection():
    assert distance_to_segment(5, 5, 0, 0, 10, 0) == 5
    assert distance_to_segment(-3, 4, 0, 0, 10, 0) == 5
    assert math.isclose(distance_to_segment(3, 4, 0, 0, 0, 0), 5)


def test_translated_returns_moved_copy():
    rect = Rectangle(10, 20, 30, 40)
    moved = translated(rect, 5, -5)
    assert (moved.x, moved.y, moved.w, moved.h) == (15, 15, 30, 40)
    assert (rect.x, rect.y) == (10, 20)

    arrow = translated(Arrow(0, 0, 10, 10), 1, 2)
    assert (arrow.x1, arrow.y1, arrow.x2, arrow.y2) == (1, 2, 11, 12)

    ring = translated(Ellipse(5, 5, 3), 10, 10)
    assert (ring.cx, ring.cy, ring.r) == (15, 15, 3)

    stroke = translated(Freehand(points=[(0, 0), (1, 1)]), 2, 3)
    assert stroke.points == [(2, 3), (3, 4)]


def test_is_empty():
    assert is_empty(Rectangle(5, 5, 0, 0))
    assert not is_empty(Rectangle(5, 5, 0, 3))
    assert is_empty(Ellipse(5, 5, 0))
    assert is_empty(Arrow(1, 1, 1, 1))
    assert is_empty(Freehand(points=[(1, 1), (1, 1)]))
    assert is_empty(TextBox(0, 0, 10, 10, "  \n "))
    assert not is_empty(TextBox(0, 0, 10, 10, "x"))


def test_text_box_lines():
    assert TextBox(0, 0, 1, 1, "Hi\nThere").lines == ["Hi", "There"]


def test_unknown_freehand_style_rejected():
    with pytest.raises(ValueError):
        Freehand(points=[], style="marker")


def test_unknown_element_type_raises():
    with pytest.raises(TypeError):
        contains(object(), 0, 0)
