from __future__ import annotations

import threading
from typing import Optional

from mandelpix.kernel.pixel import evaluate_pixel, iter_tasks
from mandelpix.util.logging_setup import get_logger

class SequentialJob:
    """Evaluates every pixel on the calling thread, row by row."""

    def __init__(self, settings, sink, *, cancel_event: Optional[threading.Event] = None, on_error: str = "sentinel"):
        self.settings = settings
        self.sink = sink
        self.cancel_event = cancel_event or threading.Event()
        self.on_error = on_error
        self.failure: Optional[BaseException] = None

    def start(self) -> "SequentialJob":
        logger = get_logger()
        logger.info("Sequential render start size=%sx%s", self.settings.width, self.settings.height)
        try:
            for task in iter_tasks(self.settings):
                if task.x == 0 and self.cancel_event.is_set():
                    logger.info("Sequential render cancelled at row %s", task.y)
                    break
                self.sink.submit(evaluate_pixel(task, self.settings, self.on_error))
        except Exception as e:
            self.failure = e
            self.sink.interrupt()
        return self

    def join(self) -> None:
        pass

def render_sequential(settings, sink, *, cancel_event=None, on_error: str = "sentinel") -> SequentialJob:
    return SequentialJob(settings, sink, cancel_event=cancel_event, on_error=on_error).start()
