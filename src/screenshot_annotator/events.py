"""
Lifecycle events for captures and exports, written as JSON lines to stderr.

Event format:
    {"event_type": "...", "timestamp": "...", "source": {"tool": "..."}, "data": {...}}
"""

import json
import sys
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List

logger = logging.getLogger(__name__)

EVENT_FIELDS = {
    "config.resolved": ["config_path", "source"],
    "operation.started": ["operation_type", "operation_id", "capture_type"],
    "operation.completed": [
        "operation_type", "operation_id", "capture_type", "success", "metadata", "error_message",
    ],
    "artifact.created": ["file_path", "file_type", "metadata"],
    "error.handled": ["error_type", "message", "capture_type"],
    "shutdown": [],
}

EVENT_CATALOG = [
    {"event_type": event_type, "data_fields": data_fields}
    for event_type, data_fields in EVENT_FIELDS.items()
]

_listeners: List[Callable[[dict], None]] = []
_source: str = "screenshot-annotator"


def configure(source: str) -> None:
    """Set the tool name stamped on every event. Call once at startup."""
    global _source
    _source = source


@contextmanager
def listening(listener: Callable[[dict], None]) -> Iterator[None]:
    """Pass every event emitted inside the block to ``listener`` as well."""
    _listeners.append(listener)
    try:
        yield
    finally:
        _listeners.remove(listener)


def emit(event_type: str, data: Dict[str, Any]) -> dict:
    """Write one event to stderr and return it.

    Raises:
        ValueError: If the event type is not in the catalog
    """
    if event_type not in EVENT_FIELDS:
        raise ValueError(f"Unknown event type: {event_type}")

    event = {
        "event_type": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": {"tool": _source},
        "data": data,
    }

    try:
        print(json.dumps(event, default=str), file=sys.stderr, flush=True)
    except OSError as exc:
        logger.debug("Could not write event: %s", exc)

    for listener in list(_listeners):
        listener(event)
    return event
