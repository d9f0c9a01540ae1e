from datetime import datetime, timezone

import pytest

cairo = pytest.importorskip("cairo")

from fakes import png_bytes  # noqa: E402

from screenshot_annotator import codec, output  # noqa: E402
from screenshot_annotator.elements import Rectangle  # noqa: E402
from screenshot_annotator.errors import DecodeFailure  # noqa: E402
from screenshot_annotator.output import (  # noqa: E402
    OutputOptions,
    download_filename,
    download_image,
    export_annotated,
    export_filename,
    read_image,
    save,
)


def test_download_filename_uses_utc_seconds():
    now = datetime(2024, 3, 5, 14, 7, 9, 123000, tzinfo=timezone.utc)
    assert download_filename("screenshot-full", now) == "screenshot-full-2024-03-05T14-07-09.png"


def test_export_filename_uses_epoch_millis():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert export_filename("jpg", now) == "annotated-1704067200000.jpg"


def test_download_image_writes_png(config, captured_events):
    image = codec.decode(png_bytes(20, 10))
    result = download_image(image, "screenshot-window", config=config)

    assert result.path.parent == config.output_dir
    assert result.path.name.startswith("screenshot-window-")
    assert result.path.suffix == ".png"
    assert (result.width, result.height) == (20, 10)
    assert codec.decode(result.path.read_bytes()).get_width() == 20

    artifact = [e for e in captured_events if e["event_type"] == "artifact.created"]
    assert artifact[0]["data"]["file_path"] == str(result.path)
    assert artifact[0]["data"]["file_type"] == "screenshot"


def test_download_image_extension_follows_format(config, monkeypatch):
    written = []

    def fake_write(surface, path, output_format, quality):
        written.append((path.suffix, output_format))
        return path

    monkeypatch.setattr(output, "write_image", fake_write)
    image = codec.decode(png_bytes(20, 10))
    result = download_image(image, "screenshot-window", OutputOptions(output_format="jpg"), config)

    assert result.path.suffix == ".jpg"
    assert written == [(".jpg", "jpg")]


def test_export_annotated_flattens_elements(config, tmp_path):
    background = codec.decode(png_bytes(40, 40, rgb=(1, 1, 1)))
    options = OutputOptions(output_path=tmp_path / "edited.png", output_format="png")
    result = export_annotated(
        background, [Rectangle(5, 5, 20, 20, color="#000000", stroke_width=2)], options, config
    )
    assert result.path == tmp_path / "edited.png"
    exported = codec.decode(result.path.read_bytes())
    assert (exported.get_width(), exported.get_height()) == (40, 40)


def test_save_prints_json(config, tmp_path, capsys):
    image = codec.decode(png_bytes(4, 4))
    options = OutputOptions(output_path=tmp_path / "x.png", output_format="png", json_output=True)
    save(image, "ignored.png", options, config)
    out = capsys.readouterr().out
    assert '"width": 4' in out
    assert str(tmp_path / "x.png") in out


def test_read_image_png(tmp_path):
    path = tmp_path / "in.png"
    path.write_bytes(png_bytes(7, 3))
    image = read_image(path)
    assert (image.get_width(), image.get_height()) == (7, 3)


def test_read_image_missing_file(tmp_path):
    with pytest.raises(OSError):
        read_image(tmp_path / "missing.png")


def test_decode_failure_for_corrupt_png(tmp_path):
    path = tmp_path / "bad.png"
    path.write_bytes(codec.PNG_SIGNATURE + b"garbage")
    with pytest.raises(DecodeFailure):
        read_image(path)
