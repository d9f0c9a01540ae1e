"""Capture surfaces: the host snapshot primitive behind every capture.

A surface exposes three primitives:
- ``capture_viewport()`` returns PNG bytes of what is currently visible
- ``scroll_to(x, y)`` scrolls the content (may be a no-op)
- ``get_metrics()`` reports scrollable and viewport dimensions

``BrowserSurface`` drives a web page through Selenium WebDriver.
``ScreenSurface`` shells out to the wayland-capture binary and cannot scroll.
"""

import json
import logging
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from .config import Config, get_config
from .errors import CaptureFailure

log = logging.getLogger(__name__)

METRICS_SCRIPT = """
return {
    scrollWidth: Math.max(document.documentElement.scrollWidth, document.body.scrollWidth),
    scrollHeight: Math.max(document.documentElement.scrollHeight, document.body.scrollHeight),
    viewportWidth: window.innerWidth,
    viewportHeight: window.innerHeight,
    devicePixelRatio: window.devicePixelRatio
};
"""


@dataclass
class SurfaceMetrics:
    """Dimensions of a capture surface, in CSS pixels."""

    scroll_width: int
    scroll_height: int
    viewport_width: int
    viewport_height: int
    device_pixel_ratio: float = 1.0

    @classmethod
    def from_dict(cls, data: dict) -> "SurfaceMetrics":
        return cls(
            scroll_width=int(data["scrollWidth"]),
            scroll_height=int(data["scrollHeight"]),
            viewport_width=int(data["viewportWidth"]),
            viewport_height=int(data["viewportHeight"]),
            device_pixel_ratio=float(data.get("devicePixelRatio") or 1.0),
        )


class Surface(Protocol):
    def capture_viewport(self) -> bytes: ...

    def scroll_to(self, x: int, y: int) -> None: ...

    def get_metrics(self) -> SurfaceMetrics: ...


class BrowserSurface:
    """A web page loaded in a Selenium WebDriver session."""

    def __init__(self, driver, owns_driver: bool = False):
        self.driver = driver
        self._owns_driver = owns_driver

    @classmethod
    def open(cls, url: str, config: Optional[Config] = None) -> "BrowserSurface":
        """Start a browser session and load ``url``.

        Raises:
            CaptureFailure: If the browser could not be started
        """
        config = config or get_config()

        # Import here to avoid loading selenium for screen captures
        from selenium import webdriver
        from selenium.common.exceptions import WebDriverException

        try:
            if config.browser == "firefox":
                options = webdriver.FirefoxOptions()
                if config.headless:
                    options.add_argument("-headless")
                driver = webdriver.Firefox(options=options)
                driver.set_window_size(config.window_width, config.window_height)
            else:
                options = webdriver.ChromeOptions()
                if config.headless:
                    options.add_argument("--headless")
                options.add_argument("--no-sandbox")
                options.add_argument("--disable-dev-shm-usage")
                options.add_argument(f"--window-size={config.window_width},{config.window_height}")
                driver = webdriver.Chrome(options=options)
            driver.get(url)
        except WebDriverException as e:
            raise CaptureFailure(f"Could not open {url}: {e.msg}")

        log.debug("Opened %s in %s", url, config.browser)
        return cls(driver, owns_driver=True)

    def capture_viewport(self) -> bytes:
        from selenium.common.exceptions import WebDriverException

        try:
            return self.driver.get_screenshot_as_png()
        except WebDriverException as e:
            raise CaptureFailure(f"Viewport snapshot failed: {e.msg}")

    def scroll_to(self, x: int, y: int) -> None:
        from selenium.common.exceptions import WebDriverException

        try:
            self.driver.execute_script("window.scrollTo(arguments[0], arguments[1]);", x, y)
        except WebDriverException as e:
            raise CaptureFailure(f"Scroll failed: {e.msg}")

    def get_metrics(self) -> SurfaceMetrics:
        from selenium.common.exceptions import WebDriverException

        try:
            data = self.driver.execute_script(METRICS_SCRIPT)
        except WebDriverException as e:
            raise CaptureFailure(f"Could not read page metrics: {e.msg}")
        return SurfaceMetrics.from_dict(data)

    def title(self) -> str:
        return self.driver.title or "page"

    def close(self) -> None:
        if self._owns_driver:
            self.driver.quit()


def list_outputs(config: Optional[Config] = None) -> list[dict]:
    """List all available outputs.

    Returns:
        List of output dicts with keys: name, description, width, height, x, y
    """
    config = config or get_config()
    try:
        result = subprocess.run(
            [config.wayland_capture, "--list", "--json"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            data = json.loads(result.stdout)
            return data.get("outputs", [])
    except (OSError, subprocess.TimeoutExpired, ValueError) as e:
        log.warning("Could not list outputs: %s", e)
    return []


class ScreenSurface:
    """The primary screen output, captured with wayland-capture.

    The screen has no scrollable content beyond the viewport, so
    ``scroll_to`` does nothing and full-page capture yields one snapshot.
    """

    def __init__(self, config: Optional[Config] = None, output: Optional[str] = None):
        self.config = config or get_config()
        self._output = output
        self._geometry: Optional[dict] = None

    def _primary(self) -> dict:
        if self._geometry is None:
            outputs = list_outputs(self.config)
            if self._output:
                outputs = [o for o in outputs if o.get("name") == self._output]
            if not outputs:
                raise CaptureFailure("Could not determine output to capture")
            self._geometry = outputs[0]
        return self._geometry

    def capture_viewport(self) -> bytes:
        output_name = self._primary().get("name")

        tmp = tempfile.NamedTemporaryFile(suffix=".png", delete=False)
        temp_path = Path(tmp.name)
        tmp.close()

        try:
            result = subprocess.run(
                [self.config.wayland_capture, "--output", output_name, "--output-file", str(temp_path)],
                capture_output=True,
                text=True,
                timeout=10,
            )
            if result.returncode != 0:
                raise CaptureFailure(f"Screen capture failed: {result.stderr}")
            return temp_path.read_bytes()
        except subprocess.TimeoutExpired:
            raise CaptureFailure("Screen capture timed out")
        except FileNotFoundError:
            raise CaptureFailure(f"wayland-capture not found: {self.config.wayland_capture}")
        finally:
            temp_path.unlink(missing_ok=True)

    def scroll_to(self, x: int, y: int) -> None:
        pass

    def get_metrics(self) -> SurfaceMetrics:
        geometry = self._primary()
        width = int(geometry.get("width", 0))
        height = int(geometry.get("height", 0))
        return SurfaceMetrics(
            scroll_width=width,
            scroll_height=height,
            viewport_width=width,
            viewport_height=height,
            device_pixel_ratio=float(geometry.get("scale", 1.0)),
        )

    def title(self) -> str:
        return "screen"

    def close(self) -> None:
        pass
