"""Full-page scroll-and-stitch capture and custom region cropping.

Full-page capture scrolls the surface one viewport at a time, waits for the
page to settle, and snapshots each viewport. The snapshots are then stacked
top to bottom into one image.

Known limitation: the last snapshot is always a full viewport. When the page
height is not a multiple of the viewport height, the browser clamps the final
scroll, so the bottom of the composite repeats content (or is blank on
surfaces that do not clamp). The composite height is always
``snapshot_count * snapshot_height``.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import cairo

from . import codec
from .capture import Surface, SurfaceMetrics
from .config import Config, get_config

log = logging.getLogger(__name__)


@dataclass
class SelectionRect:
    """A region chosen on a surface, in the reference viewport's CSS pixels."""

    x: float
    y: float
    width: float
    height: float
    reference_width: Optional[float] = None
    device_pixel_ratio: float = 1.0

    @classmethod
    def from_dict(cls, data: dict) -> "SelectionRect":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            reference_width=data.get("windowWidth"),
            device_pixel_ratio=float(data.get("devicePixelRatio") or 1.0),
        )

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "windowWidth": self.reference_width,
            "devicePixelRatio": self.device_pixel_ratio,
        }

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass
class CaptureSession:
    """Working state of one full-page capture."""

    metrics: SurfaceMetrics
    snapshots: list[bytes] = field(default_factory=list)
    scroll_y: int = 0

    @property
    def step_count(self) -> int:
        return scroll_steps(self.metrics)


def scroll_steps(metrics: SurfaceMetrics) -> int:
    """Number of viewport snapshots needed to cover the scrollable height."""
    if metrics.viewport_height <= 0:
        return 1
    return max(1, math.ceil(metrics.scroll_height / metrics.viewport_height))


def crop_scale(snapshot_width: int, reference_width: Optional[float]) -> float:
    """Ratio of snapshot pixels to reference viewport pixels."""
    if not reference_width:
        return 1.0
    return snapshot_width / reference_width


def fit_within(
    source_width: float,
    source_height: float,
    view_width: float,
    view_height: float,
) -> tuple[float, float, float]:
    """Uniform scale and centering offsets that letterbox a source in a view.

    Returns:
        (scale, left, top) where the source is drawn at ``left, top`` with
        size ``source * scale``
    """
    if source_width <= 0 or source_height <= 0:
        return 1.0, 0.0, 0.0
    scale = min(view_width / source_width, view_height / source_height)
    left = (view_width - source_width * scale) / 2
    top = (view_height - source_height * scale) / 2
    return scale, left, top


def view_selection(
    x: float,
    y: float,
    width: float,
    height: float,
    snapshot_size: tuple[int, int],
    view_size: tuple[int, int],
) -> SelectionRect:
    """Convert a marquee drawn over a letterboxed snapshot into a SelectionRect.

    The marquee is clipped to the drawn image and reported relative to it,
    with the drawn width as reference width.
    """
    snapshot_width, snapshot_height = snapshot_size
    scale, left, top = fit_within(snapshot_width, snapshot_height, *view_size)
    drawn_width = snapshot_width * scale
    drawn_height = snapshot_height * scale

    x0 = min(max(x - left, 0.0), drawn_width)
    y0 = min(max(y - top, 0.0), drawn_height)
    x1 = min(max(x + width - left, 0.0), drawn_width)
    y1 = min(max(y + height - top, 0.0), drawn_height)
    return SelectionRect(x0, y0, x1 - x0, y1 - y0, reference_width=drawn_width)


class CaptureStitcher:
    """Runs captures against a surface.

    Snapshot requests are strictly sequential; the settle delay between them
    keeps the loop under the snapshot primitive's rate limit.
    """

    def __init__(
        self,
        settle_delay_ms: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        config: Optional[Config] = None,
    ):
        if settle_delay_ms is None:
            settle_delay_ms = (config or get_config()).settle_delay_ms
        self.settle_delay_ms = settle_delay_ms
        self._sleep = sleep

    def capture_visible(self, surface: Surface) -> cairo.ImageSurface:
        """Capture the visible viewport as-is."""
        return codec.decode(surface.capture_viewport())

    def capture_full_page(self, surface: Surface) -> cairo.ImageSurface:
        """Capture the whole scrollable surface.

        Raises:
            CaptureFailure: If any snapshot or scroll step fails
            DecodeFailure: If a snapshot cannot be decoded
        """
        session = CaptureSession(metrics=surface.get_metrics())
        viewport_height = session.metrics.viewport_height
        log.debug(
            "Full page capture: %dx%d, viewport %dx%d, %d steps",
            session.metrics.scroll_width,
            session.metrics.scroll_height,
            session.metrics.viewport_width,
            viewport_height,
            session.step_count,
        )

        for step in range(session.step_count):
            session.scroll_y = step * viewport_height
            surface.scroll_to(0, session.scroll_y)
            self._sleep(self.settle_delay_ms / 1000.0)
            session.snapshots.append(surface.capture_viewport())

        surface.scroll_to(0, 0)
        session.scroll_y = 0

        bitmaps = [codec.decode(data) for data in session.snapshots]
        return codec.stack_vertically(bitmaps)

    def capture_custom_area(self, surface: Surface, rect: SelectionRect) -> cairo.ImageSurface:
        """Capture one viewport and crop it to ``rect`` at native resolution."""
        bitmap = codec.decode(surface.capture_viewport())
        scale = crop_scale(bitmap.get_width(), rect.reference_width)
        return codec.crop(
            bitmap,
            rect.x * scale,
            rect.y * scale,
            rect.width * scale,
            rect.height * scale,
        )
