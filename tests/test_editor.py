import pytest

cairo = pytest.importorskip("cairo")
gi = pytest.importorskip("gi")
try:
    gi.require_version("Gtk", "3.0")
except ValueError:
    pytest.skip("GTK 3 is not installed", allow_module_level=True)

from fakes import png_bytes  # noqa: E402

from screenshot_annotator.messaging import MessageRouter  # noqa: E402
from screenshot_annotator.store import PendingImageStore  # noqa: E402
from screenshot_annotator.ui import editor  # noqa: E402


@pytest.fixture
def opened(monkeypatch):
    calls = []
    monkeypatch.setattr(editor, "run_editor", lambda image, config=None: calls.append(image))
    return calls


def test_open_editor_without_pending_image_is_quiet(config, opened):
    router = MessageRouter()
    router.register("openEditor", editor.editor_handler(PendingImageStore(config=config), config))

    assert router.send({"action": "openEditor"}) == {"success": True}
    assert opened == []


def test_open_editor_takes_pending_image(config, opened):
    store = PendingImageStore(config=config)
    store.put(png_bytes(30, 20))
    router = MessageRouter()
    router.register("openEditor", editor.editor_handler(store, config))

    assert router.send({"action": "openEditor"})["success"]
    assert [(image.get_width(), image.get_height()) for image in opened] == [(30, 20)]
    assert not store.has_pending()
