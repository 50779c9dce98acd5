from __future__ import annotations

import enum
import logging
import os
import threading
import time
from typing import Any, Dict, Optional

import numpy as np
from tqdm import tqdm

from mandelpix.config import RENDERER_CHOICES, ViewportSettings
from mandelpix.image.png_writer import EncodeError, encode_png
from mandelpix.kernel.pixel import ON_ERROR_CHOICES
from mandelpix.renderers.processes import render_processes
from mandelpix.renderers.sequential import render_sequential
from mandelpix.renderers.threaded import render_threaded
from mandelpix.sink import ImageSink
from mandelpix.util.logging_setup import get_logger

# Below this many pixels process start-up costs more than it saves.
PROCESS_THRESHOLD_PIXELS = 250_000

class RenderState(enum.Enum):
    CONFIGURING = "configuring"
    DISPATCHING = "dispatching"
    WAITING = "waiting"
    ENCODING = "encoding"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

class RenderCancelled(RuntimeError):
    pass

class RenderFailed(RuntimeError):
    pass

def choose_renderer(*, renderer: str, width: int, height: int) -> str:
    if renderer in ("sequential", "threads", "processes"):
        return renderer
    if renderer != "auto":
        raise ValueError(f"renderer must be one of: {', '.join(RENDERER_CHOICES)}")
    if width * height >= PROCESS_THRESHOLD_PIXELS and (os.cpu_count() or 1) > 1:
        return "processes"
    return "threads"

class Orchestrator:
    """
    Runs one render: configure, dispatch pixel work, wait on the sink's
    completion barrier and optionally encode the finished image.

    ``cancel`` may be called from any thread or a signal handler; the wait
    returns early, outstanding work is dropped and ``run`` raises
    ``RenderCancelled``.
    """

    def __init__(
        self,
        settings: ViewportSettings,
        *,
        renderer: str = "auto",
        workers: Optional[int] = None,
        on_error: str = "sentinel",
        progress: bool = False,
        log_queue=None,
        log_level: int = logging.INFO,
    ):
        if on_error not in ON_ERROR_CHOICES:
            raise ValueError("on_error must be 'sentinel' or 'raise'.")
        if workers is not None and workers <= 0:
            raise ValueError("workers must be positive.")
        self.settings = settings
        self.renderer = renderer
        self.workers = workers
        self.on_error = on_error
        self.progress = progress
        self.log_queue = log_queue
        self.log_level = log_level
        self.state = RenderState.CONFIGURING
        self.resolved: Optional[str] = None
        self.elapsed: float = 0.0
        self._cancel = threading.Event()
        self._sink: Optional[ImageSink] = None

    def _set_state(self, state: RenderState) -> None:
        get_logger().debug("Render state %s -> %s", self.state.value, state.value)
        self.state = state

    def cancel(self) -> None:
        self._cancel.set()
        sink = self._sink
        if sink is not None:
            sink.interrupt()

    def renderer_info(self) -> Dict[str, Any]:
        return {"requested": self.renderer, "resolved": self.resolved, "workers": self.workers,
                "on_error": self.on_error}

    def _start(self, sink: ImageSink):
        s = self.settings
        if self.resolved == "sequential":
            return render_sequential(s, sink, cancel_event=self._cancel, on_error=self.on_error)
        if self.resolved == "threads":
            return render_threaded(s, sink, workers=self.workers, cancel_event=self._cancel, on_error=self.on_error)
        return render_processes(s, sink, workers=self.workers, cancel_event=self._cancel, on_error=self.on_error,
                                log_queue=self.log_queue, log_level=self.log_level)

    def _render(self) -> ImageSink:
        logger = get_logger()
        s = self.settings
        self._set_state(RenderState.CONFIGURING)
        self.resolved = choose_renderer(renderer=self.renderer, width=s.width, height=s.height)
        sink = ImageSink(s.width, s.height)
        self._sink = sink
        bar = tqdm(total=s.pixel_count, unit="px", unit_scale=True, disable=not self.progress)
        sink.add_listener(bar.update)

        logger.info("Render start size=%sx%s plane=%s..%s iter=%s center=%s renderer=%s",
                    s.width, s.height, s.plane_min, s.plane_max, s.max_iterations, s.center, self.resolved)
        start = time.time()
        try:
            self._set_state(RenderState.DISPATCHING)
            job = self._start(sink)
            self._set_state(RenderState.WAITING)
            try:
                complete = sink.wait(self._cancel)
            finally:
                job.join()
        finally:
            bar.close()
        self.elapsed = time.time() - start

        if job.failure is not None:
            self._set_state(RenderState.FAILED)
            raise RenderFailed(f"Render failed after {sink.written_count}/{sink.total} pixels: {job.failure}") \
                from job.failure
        if not complete:
            self._set_state(RenderState.CANCELLED)
            logger.warning("Render cancelled after %s/%s pixels", sink.written_count, sink.total)
            raise RenderCancelled(f"Render cancelled after {sink.written_count}/{sink.total} pixels.")

        logger.info("Render complete %s pixels in %.2fs", sink.written_count, self.elapsed)
        return sink

    def run(self) -> ImageSink:
        sink = self._render()
        self._set_state(RenderState.DONE)
        return sink

    def run_to(self, destination) -> ImageSink:
        sink = self._render()
        self._set_state(RenderState.ENCODING)
        try:
            encode_png(sink, destination)
        except EncodeError:
            self._set_state(RenderState.FAILED)
            raise
        self._set_state(RenderState.DONE)
        return sink

def render(settings: ViewportSettings, **kwargs) -> np.ndarray:
    """Render ``settings`` and return the read-only (H, W, 4) RGBA buffer."""
    return Orchestrator(settings, **kwargs).run().pixels()

def render_to(settings: ViewportSettings, destination, **kwargs) -> np.ndarray:
    return Orchestrator(settings, **kwargs).run_to(destination).pixels()
