from __future__ import annotations

import logging
import multiprocessing as mp
import os
import threading
from concurrent.futures import Future, ProcessPoolExecutor
from typing import List, Optional, Tuple

import numpy as np

from mandelpix.kernel.pixel import evaluate_rows
from mandelpix.util.logging_setup import configure_worker_logging, get_logger

# None keeps the platform default start method.
START_METHOD: Optional[str] = None

_G = {}

def _init_worker(settings, on_error, log_queue, log_level):
    _G["settings"] = settings
    _G["on_error"] = on_error
    configure_worker_logging(log_queue, log_level)

def _render_band(y0_y1: Tuple[int, int]) -> Tuple[int, np.ndarray]:
    y0, y1 = y0_y1
    settings = _G["settings"]
    band = evaluate_rows(y0, y1, settings, _G["on_error"])
    get_logger().debug("Rendered rows %s..%s/%s", y0, y1, settings.height)
    return y0, band

def split_bands(height: int, band_height: int) -> List[Tuple[int, int]]:
    if band_height <= 0:
        raise ValueError("band_height must be > 0")
    bands: List[Tuple[int, int]] = []
    y = 0
    while y < height:
        y1 = min(height, y + band_height)
        bands.append((y, y1))
        y = y1
    return bands

class ProcessJob:
    """
    Row bands rendered in a process pool.

    Each band covers disjoint rows, so workers share nothing; finished bands
    are written into the sink from the executor's callback thread in
    whatever order they complete.
    """

    def __init__(
        self,
        settings,
        sink,
        *,
        workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        on_error: str = "sentinel",
        log_queue=None,
        log_level: int = logging.INFO,
        band_height: int = 32,
    ):
        self.settings = settings
        self.sink = sink
        self.workers = workers or os.cpu_count() or 1
        self.cancel_event = cancel_event or threading.Event()
        self.on_error = on_error
        self.log_queue = log_queue
        self.log_level = log_level
        self.bands = split_bands(settings.height, band_height)
        self.failure: Optional[BaseException] = None
        self._pool: Optional[ProcessPoolExecutor] = None
        self._failure_lock = threading.Lock()

    def _on_band_done(self, fut: Future) -> None:
        if fut.cancelled():
            return
        try:
            y0, band = fut.result()
            self.sink.submit_rows(y0, band)
        except Exception as e:
            with self._failure_lock:
                if self.failure is None:
                    self.failure = e
                    get_logger().error("Band worker failed: %s", e)
            self.sink.interrupt()

    def start(self) -> "ProcessJob":
        get_logger().info("Process render start size=%sx%s workers=%s bands=%s",
                          self.settings.width, self.settings.height, self.workers, len(self.bands))
        self._pool = ProcessPoolExecutor(
            max_workers=self.workers,
            mp_context=mp.get_context(START_METHOD),
            initializer=_init_worker,
            initargs=(self.settings, self.on_error, self.log_queue, self.log_level),
        )
        for band in self.bands:
            if self.cancel_event.is_set():
                break
            self._pool.submit(_render_band, band).add_done_callback(self._on_band_done)
        return self

    def join(self) -> None:
        if self._pool is None:
            return
        stop_early = self.cancel_event.is_set() or self.failure is not None
        self._pool.shutdown(wait=True, cancel_futures=stop_early)

def render_processes(settings, sink, *, workers=None, cancel_event=None, on_error: str = "sentinel",
                     log_queue=None, log_level: int = logging.INFO, band_height: int = 32) -> ProcessJob:
    return ProcessJob(settings, sink, workers=workers, cancel_event=cancel_event, on_error=on_error,
                      log_queue=log_queue, log_level=log_level, band_height=band_height).start()
