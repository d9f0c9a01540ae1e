"""Request/response routing between capture, display and editor contexts.

Messages are plain dicts with an ``action`` key:

    capture          {"type": "full" | "window" | "custom"}
    startSelection   begin the interactive marquee for a custom capture
    regionSelected   {"rect": {"x", "y", "width", "height", "windowWidth", ...}}
    displayResult    {"image": data URI, "suggestedName": str}
    downloadImage    {"image": data URI, "suggestedName": str}
    openEditor       open the annotation editor on the pending image

Every request gets a response ``{"success": True}`` or
``{"success": False, "error": message}``.
"""

import logging
import time
import uuid
from typing import Any, Callable, Optional

import cairo

from . import codec
from .capture import Surface
from .config import Config, get_config
from .errors import AnnotatorError, DeliveryFailure
from .events import emit
from .output import OutputOptions, download_image
from .stitcher import CaptureStitcher, SelectionRect
from .store import PendingImageStore

log = logging.getLogger(__name__)

Handler = Callable[[dict], Optional[dict]]

CAPTURE_TYPES = ("full", "window", "custom")

# Global shortcut bindings
COMMANDS = {
    "capture_full": "full",
    "capture_window": "window",
    "capture_custom": "custom",
}

SUGGESTED_NAMES = {
    "full": "screenshot-full",
    "window": "screenshot-window",
    "custom": "screenshot-custom",
}


class MessageRouter:
    """Delivers messages to the handler registered for their action."""

    def __init__(self):
        self._handlers: dict[str, Handler] = {}

    def register(self, action: str, handler: Handler) -> None:
        self._handlers[action] = handler

    def unregister(self, action: str) -> None:
        self._handlers.pop(action, None)

    def has_receiver(self, action: str) -> bool:
        return action in self._handlers

    def deliver(self, message: dict) -> Optional[dict]:
        """Hand a message to its receiver and return the receiver's reply.

        Raises:
            DeliveryFailure: If nothing is listening for the action
        """
        action = message.get("action")
        handler = self._handlers.get(action)
        if handler is None:
            raise DeliveryFailure(f"No receiver for '{action}'")
        return handler(message)

    def send(self, message: dict) -> dict:
        """Deliver a request and wrap the outcome in a response dict."""
        try:
            reply = self.deliver(message) or {}
        except (AnnotatorError, ValueError, KeyError, OSError) as e:
            log.error("%s failed: %s", message.get("action"), e)
            return {"success": False, "error": str(e)}
        return {"success": True, **reply}


def status_message(response: dict) -> str:
    """Short status line for the initiating UI."""
    if response.get("cancelled"):
        return "Capture cancelled"
    if response.get("success"):
        return "Screenshot saved!"
    return f"Failed: {response.get('error') or 'Unknown error'}"


class CaptureService:
    """Handles capture requests against one surface.

    Results go to the ``displayResult`` receiver. When it cannot be reached
    the raw capture is downloaded instead and annotation is skipped.
    """

    def __init__(
        self,
        router: MessageRouter,
        surface: Surface,
        stitcher: Optional[CaptureStitcher] = None,
        selection_factory: Optional[Callable[[], Handler]] = None,
        config: Optional[Config] = None,
        output_options: Optional[OutputOptions] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.router = router
        self.surface = surface
        self.config = config or get_config()
        self.stitcher = stitcher or CaptureStitcher(config=self.config)
        self.selection_factory = selection_factory
        self.output_options = output_options
        self._sleep = sleep

        router.register("capture", self.handle_capture)
        router.register("regionSelected", self.handle_region_selected)
        router.register("downloadImage", self.handle_download)

    def _run(self, capture_type: str, action: Callable[[], cairo.ImageSurface]) -> None:
        operation_id = str(uuid.uuid4())
        emit("operation.started", {
            "operation_type": "screenshot.capture",
            "operation_id": operation_id,
            "capture_type": capture_type,
        })
        try:
            image = action()
        except AnnotatorError as e:
            emit("error.handled", {
                "error_type": type(e).__name__,
                "message": str(e),
                "capture_type": capture_type,
            })
            emit("operation.completed", {
                "operation_type": "screenshot.capture",
                "operation_id": operation_id,
                "capture_type": capture_type,
                "success": False,
                "error_message": str(e),
            })
            raise

        emit("operation.completed", {
            "operation_type": "screenshot.capture",
            "operation_id": operation_id,
            "capture_type": capture_type,
            "success": True,
            "metadata": {"width": image.get_width(), "height": image.get_height()},
        })
        self.deliver_result(image, SUGGESTED_NAMES[capture_type])

    def handle_capture(self, message: dict) -> Optional[dict]:
        capture_type = message.get("type")
        if capture_type == "full":
            self._run("full", lambda: self.stitcher.capture_full_page(self.surface))
        elif capture_type == "window":
            self._run("window", lambda: self.stitcher.capture_visible(self.surface))
        elif capture_type == "custom":
            # The selection UI answers with a regionSelected message
            return self.start_selection()
        else:
            raise ValueError(f"Unknown capture type: {capture_type}")

    def start_selection(self) -> Any:
        """Ask the selection UI to start, re-establishing it once if needed."""
        message = {"action": "startSelection"}
        try:
            return self.router.deliver(message)
        except DeliveryFailure as e:
            if self.selection_factory is None:
                raise
            log.debug("Selection target not ready (%s), re-establishing", e)
            self.router.register("startSelection", self.selection_factory())
            self._sleep(0.1)
            return self.router.deliver(message)

    def handle_region_selected(self, message: dict) -> None:
        rect = SelectionRect.from_dict(message["rect"])
        if rect.is_empty:
            log.debug("Empty selection ignored")
            return
        self._run("custom", lambda: self.stitcher.capture_custom_area(self.surface, rect))

    def deliver_result(self, image: cairo.ImageSurface, suggested_name: str) -> None:
        message = {
            "action": "displayResult",
            "image": codec.to_data_uri(image),
            "suggestedName": suggested_name,
        }
        try:
            self.router.deliver(message)
        except DeliveryFailure as e:
            log.warning("Could not display capture (%s), downloading instead", e)
            download_image(image, suggested_name, self.output_options, self.config)

    def handle_download(self, message: dict) -> dict:
        image = codec.decode_data_uri(message["image"])
        result = download_image(
            image, message.get("suggestedName", "screenshot"), self.output_options, self.config
        )
        return {"path": str(result.path)}


class ResultPresenter:
    """Receives finished captures and routes them onward.

    With ``annotate`` the capture is parked in the pending-image slot and the
    editor is opened; otherwise it is downloaded.
    """

    def __init__(
        self,
        router: MessageRouter,
        store: Optional[PendingImageStore] = None,
        annotate: bool = False,
    ):
        self.router = router
        self.store = store
        self.annotate = annotate
        router.register("displayResult", self.handle_display)

    def handle_display(self, message: dict) -> Optional[dict]:
        if self.annotate and self.store is not None:
            image = codec.decode_data_uri(message["image"])
            self.store.put(codec.encode(image))
            return self.router.deliver({"action": "openEditor"})
        return self.router.deliver({
            "action": "downloadImage",
            "image": message["image"],
            "suggestedName": message.get("suggestedName", "screenshot"),
        })


def run_command(router: MessageRouter, command: str) -> dict:
    """Dispatch a shortcut command name to a capture request."""
    capture_type = COMMANDS.get(command)
    if capture_type is None:
        return {"success": False, "error": f"Unknown command: {command}"}
    return router.send({"action": "capture", "type": capture_type})
