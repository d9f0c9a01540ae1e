"""Image encoding, decoding, cropping and compositing.

Bitmaps are cairo ImageSurfaces in ARGB32 format. Encoded images are PNG
bytes or ``data:image/png;base64,...`` URIs.
"""

import base64
import binascii
import io
import logging
from typing import Sequence

import cairo

from .errors import DecodeFailure

log = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
DATA_URI_PREFIX = "data:image/png;base64,"


def new_bitmap(width: int, height: int) -> cairo.ImageSurface:
    """Allocate a transparent ARGB32 bitmap."""
    return cairo.ImageSurface(cairo.FORMAT_ARGB32, max(1, width), max(1, height))


def decode(data: bytes) -> cairo.ImageSurface:
    """Decode PNG bytes into a bitmap.

    Raises:
        DecodeFailure: If the data is not a readable PNG image
    """
    if not data or not data.startswith(PNG_SIGNATURE):
        raise DecodeFailure("Image data is not a PNG")
    try:
        surface = cairo.ImageSurface.create_from_png(io.BytesIO(data))
    except (cairo.Error, MemoryError, OSError) as e:
        raise DecodeFailure(f"Could not decode image: {e}")

    if surface.get_format() == cairo.FORMAT_ARGB32:
        return surface

    # Normalize RGB24/A8 results so every bitmap composites the same way
    bitmap = new_bitmap(surface.get_width(), surface.get_height())
    cr = cairo.Context(bitmap)
    cr.set_source_surface(surface, 0, 0)
    cr.paint()
    return bitmap


def encode(surface: cairo.ImageSurface) -> bytes:
    """Encode a bitmap as PNG bytes."""
    buf = io.BytesIO()
    surface.write_to_png(buf)
    return buf.getvalue()


def decode_data_uri(uri: str) -> cairo.ImageSurface:
    """Decode a base64 data URI into a bitmap."""
    if not isinstance(uri, str) or not uri.startswith("data:"):
        raise DecodeFailure("Not a data URI")
    header, sep, payload = uri.partition(",")
    if not sep or ";base64" not in header:
        raise DecodeFailure("Data URI is not base64 encoded")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailure(f"Invalid base64 payload: {e}")
    return decode(data)


def to_data_uri(surface: cairo.ImageSurface) -> str:
    """Encode a bitmap as a PNG data URI."""
    return DATA_URI_PREFIX + base64.b64encode(encode(surface)).decode("ascii")


def crop(
    surface: cairo.ImageSurface,
    x: float,
    y: float,
    width: float,
    height: float,
) -> cairo.ImageSurface:
    """Copy a region of a bitmap into a new bitmap.

    The region size is rounded to whole pixels. Parts of the region that
    fall outside the source stay transparent.
    """
    w = max(1, int(round(width)))
    h = max(1, int(round(height)))
    cropped = new_bitmap(w, h)
    cr = cairo.Context(cropped)
    cr.set_source_surface(surface, -x, -y)
    cr.paint()
    log.debug("Cropped %.1f,%.1f %dx%d", x, y, w, h)
    return cropped


def stack_vertically(bitmaps: Sequence[cairo.ImageSurface]) -> cairo.ImageSurface:
    """Concatenate bitmaps top to bottom.

    The result is as wide as the first bitmap and ``len(bitmaps)`` times its
    height; bitmap ``i`` is drawn at ``i * first_height`` with no overlap or
    gap.
    """
    if not bitmaps:
        raise ValueError("Nothing to composite")

    width = bitmaps[0].get_width()
    strip_height = bitmaps[0].get_height()
    canvas = new_bitmap(width, strip_height * len(bitmaps))
    cr = cairo.Context(canvas)
    for index, bitmap in enumerate(bitmaps):
        cr.set_source_surface(bitmap, 0, index * strip_height)
        cr.paint()
    log.debug("Stitched %d snapshots into %dx%d", len(bitmaps), width, canvas.get_height())
    return canvas
