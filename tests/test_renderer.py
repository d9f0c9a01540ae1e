import pytest

cairo = pytest.importorskip("cairo")

from fakes import pixel, png_bytes  # noqa: E402

from screenshot_annotator import codec  # noqa: E402
from screenshot_annotator.elements import Arrow, Freehand, Rectangle, TextBox  # noqa: E402
from screenshot_annotator.renderer import (  # noqa: E402
    arrow_head_length,
    draw_element,
    flatten,
    parse_color,
    render,
)


def white(width=50, height=50):
    return codec.decode(png_bytes(width, height, rgb=(1, 1, 1)))


def test_parse_color():
    assert parse_color("#ff0000") == (1, 0, 0)
    assert parse_color("#0f0") == (0, 1, 0)
    with pytest.raises(ValueError):
        parse_color("#12345")


def test_arrow_head_grows_with_stroke():
    assert arrow_head_length(4) == 16
    assert arrow_head_length(0) == 10


def test_flatten_draws_stroke_over_background():
    background = white()
    image = flatten(background, [Rectangle(10, 10, 30, 30, color="#000000", stroke_width=2)])
    assert (image.get_width(), image.get_height()) == (50, 50)
    assert pixel(image, 10, 20) == (0, 0, 0, 255)
    assert pixel(image, 25, 25) == (255, 255, 255, 255)
    # The background itself is untouched
    assert pixel(background, 10, 20) == (255, 255, 255, 255)


def test_highlighter_is_translucent():
    stroke = Freehand(points=[(0, 25), (50, 25)], color="#000000", style="highlighter")
    r, g, b, a = pixel(flatten(white(), [stroke]), 25, 25)
    assert a == 255
    assert 100 < r < 200


def test_pen_is_opaque():
    stroke = Freehand(points=[(0, 25), (25, 25), (50, 25)], color="#000000")
    assert pixel(flatten(white(), [stroke]), 25, 25) == (0, 0, 0, 255)


def test_filled_text_box_has_white_background():
    background = codec.decode(png_bytes(60, 60, rgb=(0, 0, 0)))
    box = TextBox(0, 0, 50, 50, "x", font_size=10, filled=True)
    assert pixel(flatten(background, [box]), 45, 45) == (255, 255, 255, 255)


def test_later_elements_draw_on_top():
    red = Rectangle(10, 10, 20, 20, color="#ff0000", stroke_width=4)
    blue = Rectangle(10, 10, 20, 20, color="#0000ff", stroke_width=4)
    assert pixel(flatten(white(), [red, blue]), 10, 20) == (0, 0, 255, 255)


def test_render_draws_in_progress_last():
    canvas = codec.new_bitmap(50, 50)
    cr = cairo.Context(canvas)
    committed = Rectangle(10, 10, 20, 20, color="#ff0000", stroke_width=4)
    preview = Arrow(0, 10, 50, 10, color="#00ff00", stroke_width=4)
    render(cr, white(), [committed], in_progress=preview)
    assert pixel(canvas, 20, 10) == (0, 255, 0, 255)


def test_unknown_element_rejected():
    cr = cairo.Context(codec.new_bitmap(5, 5))
    with pytest.raises(TypeError):
        draw_element(cr, object())
