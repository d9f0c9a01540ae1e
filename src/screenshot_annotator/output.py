"""Saving captures and annotated exports.

Handles:
- Timestamped file names for raw captures and annotated exports
- Writing PNG directly, converting to JPEG/WebP through GdkPixbuf
- Copying to clipboard
- Desktop notifications
- JSON output for scripting
"""

import json
import logging
import subprocess
import tempfile
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import cairo

from . import codec
from .config import Config, get_config
from .elements import Element
from .errors import DecodeFailure
from .events import emit
from .renderer import flatten

log = logging.getLogger(__name__)


@dataclass
class OutputOptions:
    """Options for output handling."""

    output_path: Optional[Path] = None  # Custom output path
    output_format: Optional[str] = None  # png, jpg, webp (None: config default)
    quality: Optional[int] = None  # Quality for lossy formats

    clipboard: bool = True
    notification: bool = True

    stdout: bool = False  # Print path to stdout
    json_output: bool = False  # Output JSON metadata


@dataclass
class OutputResult:
    """Result of saving an image."""

    path: Path
    width: int
    height: int
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "width": self.width,
            "height": self.height,
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def download_filename(
    suggested_name: str,
    now: Optional[datetime] = None,
    extension: str = "png",
) -> str:
    """File name for a raw capture: ``<name>-<UTC time to the second>.<ext>``."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    return f"{suggested_name}-{stamp}.{extension}"


def export_filename(output_format: str, now: Optional[datetime] = None) -> str:
    """File name for an annotated export: ``annotated-<epoch ms>.<ext>``."""
    now = now or datetime.now(timezone.utc)
    return f"annotated-{int(now.timestamp() * 1000)}.{output_format}"


def _copy_to_clipboard(path: Path):
    """Copy image to clipboard using wl-copy."""
    mime = "image/png" if path.suffix == ".png" else "image/jpeg"
    try:
        with open(path, "rb") as f:
            subprocess.run(["wl-copy", "-t", mime], stdin=f, check=True)
        log.debug("Copied to clipboard")
    except (OSError, subprocess.CalledProcessError) as e:
        log.warning("Failed to copy to clipboard: %s", e)


def _show_notification(path: Path, width: int, height: int):
    """Show desktop notification."""
    try:
        import gi
        gi.require_version("Notify", "0.7")
        from gi.repository import Notify
        Notify.init("Screenshot Annotator")
        notification = Notify.Notification.new(
            "Screenshot Saved",
            f"Saved to {path.name}\n{width}x{height} pixels",
            "camera-photo",
        )
        notification.set_urgency(Notify.Urgency.LOW)
        notification.show()
    except (ImportError, ValueError) as e:
        log.debug("Could not show notification: %s", e)


def write_image(
    surface: cairo.ImageSurface,
    output_path: Path,
    output_format: str = "png",
    quality: int = 90,
) -> Path:
    """Write a bitmap in the requested format.

    Returns:
        The path actually written (WebP falls back to PNG when unsupported)
    """
    output_format = output_format.lower()
    if output_format not in ("jpg", "jpeg", "webp"):
        surface.write_to_png(str(output_path))
        return output_path

    import gi
    gi.require_version("GdkPixbuf", "2.0")
    from gi.repository import GdkPixbuf, GLib

    with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as tmp:
        temp_path = Path(tmp.name)
    try:
        surface.write_to_png(str(temp_path))
        img = GdkPixbuf.Pixbuf.new_from_file(str(temp_path))
        if output_format in ("jpg", "jpeg"):
            img.savev(str(output_path), "jpeg", ["quality"], [str(quality)])
        else:
            try:
                img.savev(str(output_path), "webp", ["quality"], [str(quality)])
            except GLib.Error:
                # Fallback to PNG if webp not supported
                output_path = output_path.with_suffix(".png")
                img.savev(str(output_path), "png", [], [])
    finally:
        temp_path.unlink(missing_ok=True)
    return output_path


def save(
    surface: cairo.ImageSurface,
    file_name: str,
    options: Optional[OutputOptions] = None,
    config: Optional[Config] = None,
    file_type: str = "screenshot",
) -> OutputResult:
    """Save a bitmap with all post-processing.

    Args:
        surface: The image to save
        file_name: Name inside the output directory (ignored with output_path)
        options: Output options
        config: Configuration object

    Returns:
        OutputResult with final path and metadata
    """
    options = options or OutputOptions()
    config = config or get_config()
    output_format = options.output_format or Path(file_name).suffix.lstrip(".") or "png"
    quality = options.quality or config.export_quality

    if options.output_path:
        output_path = options.output_path
    else:
        output_path = config.output_dir / file_name
    output_path.parent.mkdir(parents=True, exist_ok=True)

    output_path = write_image(surface, output_path, output_format, quality)
    width = surface.get_width()
    height = surface.get_height()

    if options.clipboard and config.enable_clipboard:
        _copy_to_clipboard(output_path)

    if options.notification and config.enable_notification:
        _show_notification(output_path, width, height)

    result = OutputResult(
        path=output_path,
        width=width,
        height=height,
        timestamp=datetime.now().isoformat(),
    )

    emit("artifact.created", {
        "file_path": str(output_path),
        "file_type": file_type,
        "metadata": {
            "width": width,
            "height": height,
            "format": output_path.suffix.lstrip("."),
            "timestamp": result.timestamp,
        },
    })

    if options.json_output:
        print(result.to_json(), flush=True)
    elif options.stdout:
        print(str(output_path), flush=True)
    else:
        log.info("Image saved: %s", output_path)

    return result


def download_image(
    image: cairo.ImageSurface,
    suggested_name: str,
    options: Optional[OutputOptions] = None,
    config: Optional[Config] = None,
) -> OutputResult:
    """Save a raw capture under a timestamped name, as PNG unless told otherwise."""
    options = options or OutputOptions()
    if options.output_format is None:
        options = replace(options, output_format="png")
    filename = download_filename(suggested_name, extension=options.output_format)
    return save(image, filename, options, config)


def export_annotated(
    background: cairo.ImageSurface,
    elements: Iterable[Element],
    options: Optional[OutputOptions] = None,
    config: Optional[Config] = None,
) -> OutputResult:
    """Flatten the background and annotations and save the result."""
    options = options or OutputOptions()
    config = config or get_config()
    if options.output_format is None:
        options = replace(options, output_format=config.export_format)
    image = flatten(background, elements)
    return save(
        image,
        export_filename(options.output_format),
        options,
        config,
        file_type="annotated-screenshot",
    )


def read_image(path: Path) -> cairo.ImageSurface:
    """Load an image file for editing.

    PNG files are decoded directly; other formats go through GdkPixbuf.
    """
    data = path.read_bytes()
    if data.startswith(codec.PNG_SIGNATURE):
        return codec.decode(data)

    import gi
    gi.require_version("GdkPixbuf", "2.0")
    from gi.repository import GdkPixbuf, GLib

    try:
        pixbuf = GdkPixbuf.Pixbuf.new_from_file(str(path))
        _, png = pixbuf.save_to_bufferv("png", [], [])
    except GLib.Error as e:
        raise DecodeFailure(f"Could not read {path}: {e.message}")
    return codec.decode(bytes(png))
