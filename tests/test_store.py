from screenshot_annotator.store import PendingImageStore


def test_take_returns_and_clears(tmp_path):
    store = PendingImageStore(path=tmp_path / "cache" / "pending.png")
    assert store.take() is None
    assert not store.has_pending()

    store.put(b"first")
    store.put(b"second")
    assert store.has_pending()
    assert store.take() == b"second"
    assert store.take() is None
    assert not store.has_pending()


def test_default_path_comes_from_config(config):
    store = PendingImageStore(config=config)
    assert store.path == config.pending_image_file
    store.put(b"data")
    assert config.pending_image_file.read_bytes() == b"data"
