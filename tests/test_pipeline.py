import io
import logging
import threading

import numpy as np
import pytest
from PIL import Image

import mandelpix.kernel.pixel as pixel_mod
import mandelpix.pipeline as pipeline_mod
import mandelpix.renderers.processes as processes_mod
from helpers import expected_pixels
from mandelpix.config import ViewportSettings
from mandelpix.image.png_writer import EncodeError
from mandelpix.pipeline import (
    Orchestrator,
    RenderCancelled,
    RenderFailed,
    RenderState,
    choose_renderer,
    render,
    render_to,
)
from mandelpix.renderers.processes import render_processes
from mandelpix.sink import ImageSink

class BrokenStream(io.BytesIO):
    def write(self, b):
        raise OSError("disk full")

def _failing_at(target):
    original = pixel_mod.pixel_to_plane

    def pixel_to_plane(x, y, settings):
        if (x, y) == target:
            raise FloatingPointError("bad pixel")
        return original(x, y, settings)

    return pixel_to_plane

@pytest.mark.parametrize("renderer", ["sequential", "threads", "processes"])
def test_every_renderer_produces_the_same_image(small_settings, renderer):
    pixels = render(small_settings, renderer=renderer, workers=3)
    assert np.array_equal(pixels, expected_pixels(small_settings))

def test_render_is_idempotent(small_settings):
    first = render(small_settings, renderer="threads", workers=4)
    second = render(small_settings, renderer="threads", workers=2)
    assert first.tobytes() == second.tobytes()

def test_run_reaches_done_with_every_cell_written(small_settings):
    orch = Orchestrator(small_settings, renderer="threads", workers=4)
    sink = orch.run()
    assert orch.state is RenderState.DONE
    assert orch.resolved == "threads"
    assert sink.written_count == small_settings.pixel_count
    assert sink.complete

def test_run_to_encodes_png(tmp_path, centred_settings):
    out = tmp_path / "nested" / "frame.png"
    pixels = render_to(centred_settings, str(out), renderer="threads", workers=2)
    with Image.open(out) as img:
        assert img.format == "PNG"
        assert img.size == (centred_settings.width, centred_settings.height)
        assert np.array_equal(np.asarray(img.convert("RGBA")), pixels)

def test_run_to_accepts_a_stream(centred_settings):
    buf = io.BytesIO()
    render_to(centred_settings, buf, renderer="sequential")
    assert buf.getvalue().startswith(b"\x89PNG")

def test_encoding_failure_is_surfaced(centred_settings):
    orch = Orchestrator(centred_settings, renderer="threads", workers=2)
    with pytest.raises(EncodeError) as exc:
        orch.run_to(BrokenStream())
    assert isinstance(exc.value.__cause__, OSError)
    assert orch.state is RenderState.FAILED

@pytest.fixture
def inherit_patches(monkeypatch):
    # Forked workers see the parent's monkeypatched modules.
    monkeypatch.setattr(processes_mod, "START_METHOD", "fork")

@pytest.mark.parametrize("renderer", ["sequential", "threads", "processes"])
def test_failed_pixel_is_contained(monkeypatch, caplog, inherit_patches, small_settings, renderer):
    monkeypatch.setattr(pixel_mod, "pixel_to_plane", _failing_at((5, 4)))
    with caplog.at_level(logging.WARNING, logger="mandelpix"):
        pixels = render(small_settings, renderer=renderer, workers=2)
    expected = expected_pixels(small_settings)
    expected[4, 5] = (0, 0, 0, 255)
    assert np.array_equal(pixels, expected)
    if renderer != "processes":
        assert "Pixel (5,4) failed" in caplog.text

@pytest.mark.parametrize("renderer", ["sequential", "threads", "processes"])
def test_failed_pixel_aborts_when_failing_fast(monkeypatch, inherit_patches, small_settings, renderer):
    monkeypatch.setattr(pixel_mod, "pixel_to_plane", _failing_at((5, 4)))
    orch = Orchestrator(small_settings, renderer=renderer, workers=2, on_error="raise")
    with pytest.raises(RenderFailed) as exc:
        orch.run()
    assert isinstance(exc.value.__cause__, FloatingPointError)
    assert orch.state is RenderState.FAILED
    assert not orch._sink.complete

@pytest.mark.parametrize("renderer", ["sequential", "threads", "processes"])
def test_cancel_before_run(small_settings, renderer):
    orch = Orchestrator(small_settings, renderer=renderer, workers=2)
    orch.cancel()
    with pytest.raises(RenderCancelled):
        orch.run()
    assert orch.state is RenderState.CANCELLED
    assert orch._sink.written_count == 0

@pytest.mark.parametrize("renderer", ["sequential", "threads", "processes"])
def test_cancel_after_first_write(monkeypatch, renderer):
    # Tall and narrow so the process renderer has many bands left to drop.
    settings = ViewportSettings(width=8, height=640, plane_min=-2.84, plane_max=2.04, max_iterations=200)
    orch = Orchestrator(settings, renderer=renderer, workers=1)

    class CancellingSink(ImageSink):
        def __init__(self, width, height):
            super().__init__(width, height)
            self.add_listener(lambda n: orch.cancel())

    monkeypatch.setattr(pipeline_mod, "ImageSink", CancellingSink)
    with pytest.raises(RenderCancelled):
        orch.run()
    assert orch.state is RenderState.CANCELLED
    assert 0 < orch._sink.written_count < settings.pixel_count

def test_process_job_drops_pending_bands_on_cancel(small_settings):
    sink = ImageSink(small_settings.width, small_settings.height)
    cancel = threading.Event()

    def stop(n):
        cancel.set()
        sink.interrupt()

    sink.add_listener(stop)
    job = render_processes(small_settings, sink, workers=1, cancel_event=cancel, band_height=1)
    assert sink.wait(cancel) is False
    job.join()
    assert job.failure is None
    assert 0 < sink.written_count < small_settings.pixel_count

def test_choose_renderer():
    assert choose_renderer(renderer="threads", width=4000, height=4000) == "threads"
    assert choose_renderer(renderer="auto", width=10, height=10) == "threads"
    assert choose_renderer(renderer="auto", width=800, height=800) in ("threads", "processes")
    with pytest.raises(ValueError):
        choose_renderer(renderer="gpu", width=10, height=10)

def test_orchestrator_rejects_bad_options(small_settings):
    with pytest.raises(ValueError):
        Orchestrator(small_settings, on_error="ignore")
    with pytest.raises(ValueError):
        Orchestrator(small_settings, workers=0)
