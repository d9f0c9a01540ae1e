import pytest

cairo = pytest.importorskip("cairo")

from fakes import FakeSurface  # noqa: E402

from screenshot_annotator import codec  # noqa: E402
from screenshot_annotator.errors import DeliveryFailure  # noqa: E402
from screenshot_annotator.messaging import (  # noqa: E402
    CaptureService,
    MessageRouter,
    ResultPresenter,
    run_command,
    status_message,
)
from screenshot_annotator.output import OutputOptions  # noqa: E402
from screenshot_annotator.stitcher import CaptureStitcher, SelectionRect  # noqa: E402
from screenshot_annotator.store import PendingImageStore  # noqa: E402


@pytest.fixture
def router():
    return MessageRouter()


def make_service(router, config, sleeps, surface=None, selection_factory=None):
    return CaptureService(
        router,
        surface or FakeSurface(snapshot_size=(100, 50), scroll_height=2500, viewport_height=1000),
        stitcher=CaptureStitcher(settle_delay_ms=0, sleep=sleeps.append),
        selection_factory=selection_factory,
        config=config,
        output_options=OutputOptions(clipboard=False, notification=False),
        sleep=sleeps.append,
    )


def saved_files(config):
    return sorted(config.output_dir.glob("*.png"))


def test_deliver_without_receiver_raises(router):
    with pytest.raises(DeliveryFailure):
        router.deliver({"action": "nobody"})
    assert not router.has_receiver("nobody")


def test_send_wraps_replies_and_errors(router):
    router.register("echo", lambda message: {"value": message["value"]})
    router.register("boom", lambda message: message["missing"])
    assert router.send({"action": "echo", "value": 3}) == {"success": True, "value": 3}
    failed = router.send({"action": "boom"})
    assert failed["success"] is False
    assert "missing" in failed["error"]
    assert router.send({"action": "nobody"}) == {
        "success": False,
        "error": "No receiver for 'nobody'",
    }


def test_unregister(router):
    router.register("x", lambda message: None)
    router.unregister("x")
    assert not router.has_receiver("x")


def test_full_capture_without_display_falls_back_to_download(router, config, sleeps):
    make_service(router, config, sleeps)
    response = router.send({"action": "capture", "type": "full"})
    assert response == {"success": True}

    files = saved_files(config)
    assert len(files) == 1
    assert files[0].name.startswith("screenshot-full-")
    image = codec.decode(files[0].read_bytes())
    assert (image.get_width(), image.get_height()) == (100, 150)


def test_presenter_downloads_when_not_annotating(router, config, sleeps):
    make_service(router, config, sleeps)
    ResultPresenter(router)
    assert router.send({"action": "capture", "type": "window"})["success"]
    files = saved_files(config)
    assert len(files) == 1
    assert files[0].name.startswith("screenshot-window-")


def test_presenter_parks_image_and_opens_editor(router, config, sleeps, tmp_path):
    store = PendingImageStore(path=tmp_path / "pending.png")
    opened = []
    make_service(router, config, sleeps)
    ResultPresenter(router, store, annotate=True)
    router.register("openEditor", lambda message: opened.append(store.take()))

    assert router.send({"action": "capture", "type": "window"})["success"]
    assert len(opened) == 1
    assert codec.decode(opened[0]).get_width() == 100
    assert not store.has_pending()
    assert saved_files(config) == []


def test_custom_capture_uses_selection(router, config, sleeps):
    surface = FakeSurface(snapshot_size=(2560, 2000))
    rect = SelectionRect(100, 50, 200, 100, reference_width=1280)

    def factory():
        return lambda message: router.send({"action": "regionSelected", "rect": rect.to_dict()})

    make_service(router, config, sleeps, surface=surface, selection_factory=factory)
    response = router.send({"action": "capture", "type": "custom"})
    assert response["success"]

    # The selection target was established on demand
    assert router.has_receiver("startSelection")
    assert sleeps == [0.1]

    image = codec.decode(saved_files(config)[0].read_bytes())
    assert (image.get_width(), image.get_height()) == (400, 200)


def test_custom_capture_cancelled(router, config, sleeps):
    make_service(router, config, sleeps, selection_factory=lambda: lambda message: {"cancelled": True})
    response = router.send({"action": "capture", "type": "custom"})
    assert response == {"success": True, "cancelled": True}
    assert status_message(response) == "Capture cancelled"
    assert saved_files(config) == []


def test_custom_capture_without_selection_ui_fails(router, config, sleeps):
    make_service(router, config, sleeps)
    response = router.send({"action": "capture", "type": "custom"})
    assert response["success"] is False
    assert "startSelection" in response["error"]


def test_empty_region_is_ignored(router, config, sleeps):
    make_service(router, config, sleeps)
    response = router.send({
        "action": "regionSelected",
        "rect": {"x": 5, "y": 5, "width": 0, "height": 10},
    })
    assert response == {"success": True}
    assert saved_files(config) == []


def test_capture_failure_is_reported(router, config, sleeps, captured_events):
    surface = FakeSurface(scroll_height=3000, viewport_height=1000, fail_on_capture=1)
    make_service(router, config, sleeps, surface=surface)
    response = router.send({"action": "capture", "type": "full"})
    assert response == {"success": False, "error": "snapshot refused"}
    assert status_message(response) == "Failed: snapshot refused"

    types = [e["event_type"] for e in captured_events]
    assert types == ["operation.started", "error.handled", "operation.completed"]
    assert captured_events[-1]["data"]["success"] is False


def test_capture_success_events(router, config, sleeps, captured_events):
    make_service(router, config, sleeps)
    router.send({"action": "capture", "type": "window"})
    completed = [e for e in captured_events if e["event_type"] == "operation.completed"]
    assert completed[0]["data"]["success"] is True
    assert completed[0]["data"]["metadata"] == {"width": 100, "height": 50}


def test_unknown_capture_type(router, config, sleeps):
    make_service(router, config, sleeps)
    response = router.send({"action": "capture", "type": "panorama"})
    assert response["success"] is False


def test_download_image_message(router, config, sleeps):
    make_service(router, config, sleeps)
    uri = codec.to_data_uri(codec.new_bitmap(3, 3))
    reply = router.send({"action": "downloadImage", "image": uri, "suggestedName": "shot"})
    assert reply["success"]
    assert reply["path"].endswith(".png")
    assert "shot-" in reply["path"]


def test_run_command(router, config, sleeps):
    make_service(router, config, sleeps)
    assert run_command(router, "capture_window")["success"]
    assert run_command(router, "capture_everything") == {
        "success": False,
        "error": "Unknown command: capture_everything",
    }


def test_status_message():
    assert status_message({"success": True}) == "Screenshot saved!"
    assert status_message({"success": False}) == "Failed: Unknown error"
