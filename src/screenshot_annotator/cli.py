"""Command-line interface for Screenshot Annotator.

Entry point flow:
1. Parse arguments, answer introspection flags
2. Load configuration and set up logging/events
3. Open the capture surface (browser page or screen)
4. Send one capture request through the message router
5. Save the result or open the annotation editor
"""

import argparse
import atexit
import json
import logging
import sys
import time
from pathlib import Path
from typing import Callable, Optional

from . import __version__
from .capture import BrowserSurface, ScreenSurface
from .config import (
    Config,
    EXPORT_FORMATS,
    config_defaults,
    config_schema,
    config_to_dict,
    load_config,
    validate_config_file,
)
from .errors import AnnotatorError
from .events import EVENT_CATALOG, configure, emit
from .messaging import (
    COMMANDS,
    CaptureService,
    MessageRouter,
    ResultPresenter,
    run_command,
    status_message,
)
from .output import OutputOptions, read_image
from .stitcher import SelectionRect
from .store import PendingImageStore

log = logging.getLogger(__name__)


def create_argument_parser() -> argparse.ArgumentParser:
    """Create comprehensive argument parser for CLI usage."""
    parser = argparse.ArgumentParser(
        description="Capture, stitch and annotate screenshots of web pages or the screen",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                      # Select a screen region interactively
  %(prog)s --full --url https://example.com     # Stitch a whole web page
  %(prog)s --window --annotate                  # Capture the screen and annotate it
  %(prog)s --rect 100,50,200,100,1280 --url URL # Crop a region without UI
  %(prog)s --command capture_full --url URL     # Same as a keyboard shortcut
  %(prog)s --edit ~/Pictures/shot.png           # Annotate an existing image
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"screenshot-annotator {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config file (default: platform config dir)",
    )

    # Introspection
    parser.add_argument(
        "--print-defaults",
        action="store_true",
        help="Print default configuration as JSON and exit",
    )
    parser.add_argument(
        "--print-config-schema",
        action="store_true",
        help="Print configuration schema as JSON and exit",
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Validate configuration file and exit",
    )
    parser.add_argument(
        "--print-resolved",
        action="store_true",
        help="Print resolved configuration as JSON and exit",
    )
    parser.add_argument(
        "--print-event-catalog",
        action="store_true",
        help="Print event catalog as JSON and exit",
    )

    # Capture modes (mutually exclusive)
    capture_group = parser.add_mutually_exclusive_group()
    capture_group.add_argument(
        "--full",
        action="store_true",
        help="Scroll through the whole page and stitch it into one image",
    )
    capture_group.add_argument(
        "--window",
        action="store_true",
        help="Capture the visible viewport",
    )
    capture_group.add_argument(
        "--custom",
        action="store_true",
        help="Select a region of the viewport (default)",
    )
    capture_group.add_argument(
        "--command",
        choices=sorted(COMMANDS),
        help="Run a shortcut command",
    )
    capture_group.add_argument(
        "--edit",
        metavar="PATH",
        help="Open an existing image in the annotation editor",
    )

    # Source
    parser.add_argument(
        "--url",
        metavar="URL",
        help="Capture this web page in a browser (default: the screen)",
    )
    parser.add_argument(
        "--rect",
        metavar="X,Y,W,H[,REF]",
        help="Region for a custom capture, optionally with the width it was measured at",
    )
    parser.add_argument(
        "--annotate",
        action="store_true",
        help="Open the annotation editor after capturing",
    )

    # Output options
    parser.add_argument(
        "--output", "-o",
        metavar="PATH",
        help="Custom output path (default: output_dir/<name>-<timestamp>.png)",
    )
    parser.add_argument(
        "--format", "-f",
        choices=sorted(EXPORT_FORMATS),
        help="Output format (default: png for captures, export_format for annotations)",
    )
    parser.add_argument(
        "--quality", "-q",
        type=int,
        metavar="1-100",
        help="Quality for lossy formats (default: export_quality)",
    )

    # Behavior options
    parser.add_argument(
        "--no-clipboard",
        action="store_true",
        help="Do not copy to clipboard",
    )
    parser.add_argument(
        "--no-notification",
        action="store_true",
        help="Do not show notification",
    )

    # Output modes
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print output path to stdout",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON metadata to stdout",
    )

    parser.add_argument(
        "--delay",
        type=int,
        metavar="MS",
        help="Delay before capture in milliseconds",
    )

    # Debug
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


def build_output_options(args: argparse.Namespace) -> OutputOptions:
    """Build OutputOptions from parsed arguments."""
    return OutputOptions(
        output_path=Path(args.output).expanduser() if args.output else None,
        output_format=args.format,
        quality=args.quality,
        clipboard=not args.no_clipboard,
        notification=not args.no_notification,
        stdout=args.stdout,
        json_output=args.json,
    )


def parse_rect(value: str) -> SelectionRect:
    """Parse ``X,Y,W,H`` or ``X,Y,W,H,REFWIDTH``.

    Raises:
        ValueError: If the value is malformed
    """
    parts = [float(part) for part in value.split(",")]
    if len(parts) not in (4, 5):
        raise ValueError(f"Expected X,Y,W,H[,REF], got '{value}'")
    reference_width = parts[4] if len(parts) == 5 else None
    return SelectionRect(parts[0], parts[1], parts[2], parts[3], reference_width=reference_width)


def _emit_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _handle_introspection(args: argparse.Namespace) -> Optional[int]:
    config_path = Path(args.config).expanduser() if args.config else None

    if args.print_defaults:
        _emit_json(config_defaults())
        return 0

    if args.print_config_schema:
        _emit_json(config_schema())
        return 0

    if args.validate_config:
        errors = validate_config_file(config_path)
        if errors:
            for error in errors:
                print(error, file=sys.stderr)
            return 1
        return 0

    if args.print_resolved:
        config = load_config(config_path=config_path)
        _emit_json(config_to_dict(config))
        return 0

    if args.print_event_catalog:
        _emit_json({"catalog": EVENT_CATALOG})
        return 0

    return None


def _fixed_selection(router: MessageRouter, rect: SelectionRect) -> Callable[[dict], dict]:
    """A ``startSelection`` receiver that answers with a preset region."""

    def start(message: dict) -> dict:
        return router.send({"action": "regionSelected", "rect": rect.to_dict()})

    return start


def handle_edit(path: Path, config: Config) -> int:
    """Open an image file in the annotation editor."""
    try:
        image = read_image(path)
    except (AnnotatorError, OSError) as e:
        emit("error.handled", {"error_type": type(e).__name__, "message": str(e), "capture_type": None})
        log.error("Could not open %s: %s", path, e)
        return 1

    # Import here to avoid GTK initialization for non-interactive modes
    from .ui import run_editor
    return run_editor(image, config)


def handle_capture(
    args: argparse.Namespace,
    config: Config,
    options: OutputOptions,
) -> int:
    """Run one capture request against the chosen surface."""
    rect = None
    if args.rect:
        try:
            rect = parse_rect(args.rect)
        except ValueError as e:
            log.error("Invalid region: %s", e)
            return 1

    try:
        surface = BrowserSurface.open(args.url, config) if args.url else ScreenSurface(config)
    except AnnotatorError as e:
        emit("error.handled", {"error_type": type(e).__name__, "message": str(e), "capture_type": None})
        log.error("Capture failed: %s", e)
        return 1

    router = MessageRouter()
    store = PendingImageStore(config=config)

    def selection_factory():
        if rect is not None:
            return _fixed_selection(router, rect)
        from .ui import selection_handler
        return selection_handler(router, surface)

    CaptureService(
        router,
        surface,
        selection_factory=selection_factory,
        config=config,
        output_options=options,
    )
    ResultPresenter(router, store, annotate=args.annotate)
    if args.annotate:
        from .ui import editor_handler
        router.register("openEditor", editor_handler(store, config))

    try:
        if args.command:
            response = run_command(router, args.command)
        elif args.full:
            response = router.send({"action": "capture", "type": "full"})
        elif args.window:
            response = router.send({"action": "capture", "type": "window"})
        else:
            response = router.send({"action": "capture", "type": "custom"})
    finally:
        surface.close()

    message = status_message(response)
    if response.get("success"):
        log.info(message)
        return 0
    log.error(message)
    return 1


def main(args: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    # Introspection flags short-circuit normal execution
    result = _handle_introspection(parsed_args)
    if result is not None:
        return result

    # Configure event emitter and register shutdown
    configure("screenshot-annotator")
    atexit.register(lambda: emit("shutdown", {}))

    config_path = Path(parsed_args.config).expanduser() if parsed_args.config else None
    config = load_config(config_path=config_path)

    resolved_path = config_path or "default"
    source = "cli" if config_path else "default"
    emit("config.resolved", {"config_path": str(resolved_path), "source": source})

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if parsed_args.debug else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if parsed_args.edit:
        return handle_edit(Path(parsed_args.edit).expanduser(), config)

    # Handle delay
    if parsed_args.delay:
        time.sleep(parsed_args.delay / 1000.0)

    options = build_output_options(parsed_args)
    return handle_capture(parsed_args, config, options)


if __name__ == "__main__":
    sys.exit(main())
