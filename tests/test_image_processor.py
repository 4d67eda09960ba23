import io
import threading
import time

import pytest
from PIL import Image

from imaging import image_processor as processor_module
from imaging.image_processor import ImageProcessor, processing_metrics
from imaging.models import ProcessedItem, SourceImage
from resizer.errors import ConfigurationError, DecodeError
from resizer.progress import ProgressStage
from resizer.settings import ProcessingSettings
from resizer.surfaces import SurfacePool


@pytest.fixture
def processor():
    return ImageProcessor(SurfacePool(max_surfaces=4))


def _settings(**overrides):
    options = {"width": 30, "height": 30, "format": "png"}
    options.update(overrides)
    return ProcessingSettings(**options)


def test_process_image_returns_output_sized_item(processor, make_source):
    item = processor.process_image(make_source(name="a.jpg", size=(80, 40)), _settings())
    assert isinstance(item, ProcessedItem)
    assert item.name == "a.jpg"
    assert item.mime_type == "image/png"
    with Image.open(io.BytesIO(item.data)) as img:
        assert img.size == (30, 30)


def test_batch_skips_failures_and_keeps_order(processor, make_source, broken_source):
    sources = [
        make_source(name="one.png"),
        broken_source,
        make_source(name="two.png"),
        SourceImage(name="empty.png", data=b""),
        make_source(name="three.png"),
    ]
    result = processor.process_batch(sources, _settings())

    assert [item.name for item in result.items] == ["one.png", "two.png", "three.png"]
    assert [(f.index, f.name) for f in result.failures] == [(1, "broken.png"), (3, "empty.png")]
    assert result.total == 5
    assert processing_metrics.counters["success"] == 3
    assert processing_metrics.counters["failure"] == 2
    assert len(processing_metrics.durations) == 3


def test_batch_with_only_failures_is_empty(processor, broken_source):
    result = processor.process_batch([broken_source, broken_source], _settings())
    assert result.is_empty
    assert result.failed == 2


def test_parallel_batch_preserves_input_order(processor, make_source, broken_source):
    sources = [make_source(name=f"img{i}.png", size=(20 + i, 20)) for i in range(6)]
    sources.insert(2, broken_source)
    result = processor.process_batch(sources, _settings(), max_workers=3)

    assert [item.name for item in result.items] == [f"img{i}.png" for i in range(6)]
    assert result.failures[0].index == 2


def test_parallel_and_sequential_outputs_match(processor, make_source):
    sources = [make_source(name=f"img{i}.png", color=(i * 40, 0, 0)) for i in range(4)]
    sequential = processor.process_batch(sources, _settings())
    parallel = processor.process_batch(sources, _settings(), max_workers=4)
    assert [i.data for i in sequential.items] == [i.data for i in parallel.items]


def test_progress_events_per_item(processor, make_source, broken_source):
    events = []
    processor.process_batch(
        [make_source(name="ok.png"), broken_source],
        _settings(),
        progress_callback=events.append,
    )
    assert [e.stage for e in events] == [ProgressStage.PROCESSING] * 2
    assert [(e.index, e.name, e.succeeded) for e in events] == [
        (0, "ok.png", True),
        (1, "broken.png", False),
    ]
    assert events[-1].percent == 90


def test_decode_timeout_becomes_item_failure(monkeypatch, make_source):
    def slow_decode(source):
        time.sleep(0.5)
        raise AssertionError("should have timed out")

    monkeypatch.setattr(processor_module, "decode_image", slow_decode)
    pool = SurfacePool(max_surfaces=1)
    proc = ImageProcessor(pool, decode_timeout=0.05)
    with pytest.raises(DecodeError, match="timed out"):
        proc.decode(make_source())
    result = proc.process_batch([make_source()], _settings())

    assert result.is_empty
    assert "timed out" in result.failures[0].reason
    # The surface went back to the pool despite the timeout
    assert pool.idle_count() == 1


def test_hung_decoders_do_not_block_later_items(monkeypatch, make_source):
    release = threading.Event()
    real_decode = processor_module.decode_image

    def decode_or_hang(source):
        if source.name.startswith("hang"):
            release.wait(5)
        return real_decode(source)

    monkeypatch.setattr(processor_module, "decode_image", decode_or_hang)
    sources = [make_source(name=f"hang{i}.png") for i in range(10)]
    sources.append(make_source(name="good.png"))
    try:
        result = ImageProcessor(SurfacePool(), decode_timeout=0.1).process_batch(
            sources, _settings()
        )
    finally:
        release.set()

    assert [item.name for item in result.items] == ["good.png"]
    assert result.failed == 10
    assert all("timed out" in failure.reason for failure in result.failures)


def test_unexpected_errors_are_isolated(monkeypatch, processor, make_source):
    calls = {"n": 0}
    real_encode = processor_module.encode_image

    def flaky_encode(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return real_encode(*args, **kwargs)

    monkeypatch.setattr(processor_module, "encode_image", flaky_encode)
    result = processor.process_batch(
        [make_source(name="first.png"), make_source(name="second.png")], _settings()
    )
    assert [item.name for item in result.items] == ["second.png"]
    assert "boom" in result.failures[0].reason


def test_invalid_worker_count_is_rejected(processor, make_source):
    with pytest.raises(ConfigurationError):
        processor.process_batch([make_source()], _settings(), max_workers=0)


def test_lossy_batch_honours_size_ceiling(processor, make_source):
    settings = _settings(width=200, height=200, format="jpg", max_file_size=50)
    result = processor.process_batch([make_source(size=(300, 300))], settings)
    assert result.items[0].size_bytes <= 50 * 1024
    assert result.items[0].quality == 90
