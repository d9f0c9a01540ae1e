import pytest

from screenshot_annotator import events
from screenshot_annotator.config import Config


@pytest.fixture
def config(tmp_path):
    return Config(
        cache_dir=tmp_path / "cache",
        output_dir=tmp_path / "out",
        settle_delay_ms=0,
        enable_clipboard=False,
        enable_notification=False,
    )


@pytest.fixture
def sleeps():
    """Records requested delays instead of sleeping."""
    return []


@pytest.fixture
def captured_events():
    seen = []
    with events.listening(seen.append):
        yield seen
