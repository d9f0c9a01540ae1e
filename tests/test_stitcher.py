import pytest

cairo = pytest.importorskip("cairo")

from fakes import FakeSurface, pixel  # noqa: E402

from screenshot_annotator.capture import SurfaceMetrics  # noqa: E402
from screenshot_annotator.errors import CaptureFailure  # noqa: E402
from screenshot_annotator.stitcher import (  # noqa: E402
    CaptureStitcher,
    SelectionRect,
    crop_scale,
    fit_within,
    scroll_steps,
    view_selection,
)


def metrics(scroll_height, viewport_height):
    return SurfaceMetrics(1280, scroll_height, 1280, viewport_height)


@pytest.mark.parametrize(
    "scroll_height, viewport_height, expected",
    [
        (2500, 1000, 3),
        (3000, 1000, 3),
        (800, 1000, 1),
        (0, 1000, 1),
        (1000, 0, 1),
    ],
)
def test_scroll_steps(scroll_height, viewport_height, expected):
    assert scroll_steps(metrics(scroll_height, viewport_height)) == expected


def test_crop_scale():
    assert crop_scale(2560, 1280) == 2
    assert crop_scale(2560, None) == 1
    assert crop_scale(2560, 0) == 1


def test_full_page_snapshots_and_composite_height(sleeps):
    surface = FakeSurface(snapshot_size=(200, 100), scroll_height=2500, viewport_height=1000)
    stitcher = CaptureStitcher(settle_delay_ms=1000, sleep=sleeps.append)

    image = stitcher.capture_full_page(surface)

    assert image.get_width() == 200
    assert image.get_height() == 300
    assert sleeps == [1.0, 1.0, 1.0]
    assert surface.calls == [
        ("scroll", 0, 0),
        ("capture",),
        ("scroll", 0, 1000),
        ("capture",),
        ("scroll", 0, 2000),
        ("capture",),
        ("scroll", 0, 0),
    ]


def test_full_page_snapshots_are_sequential_after_settle(sleeps):
    order = []
    surface = FakeSurface(scroll_height=2000, viewport_height=1000)
    original_capture = surface.capture_viewport

    def capture():
        order.append("capture")
        return original_capture()

    surface.capture_viewport = capture
    stitcher = CaptureStitcher(settle_delay_ms=500, sleep=lambda s: order.append("sleep"))
    stitcher.capture_full_page(surface)
    assert order == ["sleep", "capture", "sleep", "capture"]


def test_full_page_failure_propagates(sleeps):
    surface = FakeSurface(scroll_height=3000, viewport_height=1000, fail_on_capture=1)
    stitcher = CaptureStitcher(settle_delay_ms=0, sleep=sleeps.append)
    with pytest.raises(CaptureFailure):
        stitcher.capture_full_page(surface)


def test_capture_visible(sleeps):
    surface = FakeSurface(snapshot_size=(64, 32))
    image = CaptureStitcher(settle_delay_ms=0, sleep=sleeps.append).capture_visible(surface)
    assert (image.get_width(), image.get_height()) == (64, 32)
    assert sleeps == []


def test_custom_area_scales_to_native_resolution(sleeps):
    surface = FakeSurface(snapshot_size=(2560, 2000), marker=(200, 100))
    rect = SelectionRect(100, 50, 200, 100, reference_width=1280)
    image = CaptureStitcher(settle_delay_ms=0).capture_custom_area(surface, rect)
    assert (image.get_width(), image.get_height()) == (400, 200)
    assert pixel(image, 0, 0) == (0, 0, 255, 255)
    assert pixel(image, 1, 1) == (255, 0, 0, 255)


def test_fit_within_letterboxes_uniformly():
    assert fit_within(1280, 1000, 1920, 1080) == pytest.approx((1.08, 268.8, 0))
    assert fit_within(1000, 1000, 500, 800) == pytest.approx((0.5, 0, 150))
    assert fit_within(0, 0, 500, 800) == (1.0, 0.0, 0.0)


def test_view_selection_maps_back_to_snapshot_rows():
    # 1280x1000 snapshot on a 1920x500 overlay: drawn at half size, 640px bars
    rect = view_selection(640 + 50, 250, 100, 50, (1280, 1000), (1920, 500))
    assert (rect.x, rect.y, rect.width, rect.height) == (50, 250, 100, 50)
    assert rect.reference_width == 640

    surface = FakeSurface(snapshot_size=(1280, 1000), marker=(100, 500))
    image = CaptureStitcher(settle_delay_ms=0).capture_custom_area(surface, rect)
    assert (image.get_width(), image.get_height()) == (200, 100)
    assert pixel(image, 0, 0) == (0, 0, 255, 255)


def test_view_selection_clips_to_drawn_image():
    rect = view_selection(0, 0, 400, 100, (1000, 1000), (1200, 1000))
    assert (rect.x, rect.y, rect.width, rect.height) == (0, 0, 300, 100)
    assert rect.reference_width == 1000
    assert view_selection(0, 0, 50, 50, (1000, 1000), (1200, 1000)).is_empty


def test_custom_area_without_reference_width_is_unscaled():
    surface = FakeSurface(snapshot_size=(1280, 1000))
    rect = SelectionRect(10, 10, 30, 20)
    image = CaptureStitcher(settle_delay_ms=0).capture_custom_area(surface, rect)
    assert (image.get_width(), image.get_height()) == (30, 20)


def test_selection_rect_round_trips_message_keys():
    rect = SelectionRect.from_dict(
        {"x": 1, "y": 2, "width": 3, "height": 4, "windowWidth": 1280, "devicePixelRatio": 2}
    )
    assert rect == SelectionRect(1, 2, 3, 4, reference_width=1280, device_pixel_ratio=2)
    assert rect.to_dict()["windowWidth"] == 1280
    assert SelectionRect(0, 0, 0, 5).is_empty


def test_settle_delay_defaults_to_config(config):
    config.settle_delay_ms = 250
    assert CaptureStitcher(config=config).settle_delay_ms == 250
