from __future__ import annotations

import os
import queue
import threading
from typing import List, Optional

from mandelpix.kernel.pixel import evaluate_pixel, iter_tasks
from mandelpix.util.logging_setup import get_logger

_POLL_SECONDS = 0.1
_QUEUE_DEPTH_PER_WORKER = 256
_STOP = None

class ThreadedJob:
    """
    A fixed pool of worker threads pulling pixel tasks from a bounded queue.

    A feeder thread walks the raster and blocks while the queue is full, so
    at most ``workers * 256`` tasks exist at any time. Workers hand each
    result straight to the sink. The first worker exception is kept in
    ``failure``, stops the remaining workers and wakes the sink's waiters.
    """

    def __init__(
        self,
        settings,
        sink,
        *,
        workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        on_error: str = "sentinel",
    ):
        self.settings = settings
        self.sink = sink
        self.workers = workers or os.cpu_count() or 1
        self.cancel_event = cancel_event or threading.Event()
        self.on_error = on_error
        self.failure: Optional[BaseException] = None
        self._abort = threading.Event()
        self._tasks: queue.Queue = queue.Queue(maxsize=self.workers * _QUEUE_DEPTH_PER_WORKER)
        self._threads: List[threading.Thread] = []

    def _stopping(self) -> bool:
        return self._abort.is_set() or self.cancel_event.is_set()

    def _put(self, item) -> bool:
        while not self._stopping():
            try:
                self._tasks.put(item, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _feed(self) -> None:
        for task in iter_tasks(self.settings):
            if not self._put(task):
                return
        for _ in range(self.workers):
            if not self._put(_STOP):
                return

    def _work(self) -> None:
        while not self._stopping():
            try:
                task = self._tasks.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
            if task is _STOP:
                return
            try:
                self.sink.submit(evaluate_pixel(task, self.settings, self.on_error))
            except Exception as e:
                self._fail(e)
                return

    def _fail(self, exc: BaseException) -> None:
        if self.failure is None:
            self.failure = exc
            get_logger().error("Pixel worker failed: %s", exc)
        self._abort.set()
        self.sink.interrupt()

    def start(self) -> "ThreadedJob":
        get_logger().info("Threaded render start size=%sx%s workers=%s",
                          self.settings.width, self.settings.height, self.workers)
        feeder = threading.Thread(target=self._feed, name="mandelpix-feeder", daemon=True)
        self._threads.append(feeder)
        for i in range(self.workers):
            self._threads.append(threading.Thread(target=self._work, name=f"mandelpix-worker-{i}", daemon=True))
        for t in self._threads:
            t.start()
        return self

    def join(self) -> None:
        if self.cancel_event.is_set():
            self._abort.set()
        for t in self._threads:
            t.join()

def render_threaded(settings, sink, *, workers=None, cancel_event=None, on_error: str = "sentinel") -> ThreadedJob:
    return ThreadedJob(settings, sink, workers=workers, cancel_event=cancel_event, on_error=on_error).start()
