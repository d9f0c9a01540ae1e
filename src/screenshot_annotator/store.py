"""Hand-off slot for the image waiting to be opened in the editor.

The capture side writes the slot once per capture; the editor reads and
clears it once at startup.
"""

import logging
from pathlib import Path
from typing import Optional

from .config import Config, get_config

log = logging.getLogger(__name__)


class PendingImageStore:
    """Single-slot store backed by a file in the cache directory."""

    def __init__(self, path: Optional[Path] = None, config: Optional[Config] = None):
        self.path = path or (config or get_config()).pending_image_file

    def put(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_bytes(data)
        tmp.replace(self.path)
        log.debug("Pending image stored: %s (%d bytes)", self.path, len(data))

    def take(self) -> Optional[bytes]:
        """Return the pending image and empty the slot."""
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return None
        self.path.unlink(missing_ok=True)
        return data

    def has_pending(self) -> bool:
        return self.path.exists()
