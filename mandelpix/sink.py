from __future__ import annotations

import threading
from typing import Callable, List, Optional

import numpy as np
from PIL import Image

from mandelpix.kernel.color import OPAQUE

class ImageSink:
    """
    The shared W x H RGBA pixel buffer of one render.

    Writers call ``submit`` (one pixel) or ``submit_rows`` (a band of whole
    rows) from any thread and in any order. Every cell must be written exactly
    once; the buffer becomes read-only as soon as the last cell lands, and
    ``wait`` blocks until then.
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError("width/height must be positive.")
        self.width = width
        self.height = height
        self._pixels = np.zeros((height, width, 4), dtype=np.uint8)
        self._written = np.zeros((height, width), dtype=bool)
        self._count = 0
        self._interrupted = False
        self._lock = threading.Lock()
        self._done = threading.Condition(self._lock)
        self._listeners: List[Callable[[int], None]] = []

    @property
    def total(self) -> int:
        return self.width * self.height

    @property
    def written_count(self) -> int:
        with self._lock:
            return self._count

    @property
    def complete(self) -> bool:
        with self._lock:
            return self._count == self.total

    def add_listener(self, fn: Callable[[int], None]) -> None:
        """``fn(n)`` is called outside the lock after every write of ``n`` cells."""
        self._listeners.append(fn)

    def _check_open(self) -> None:
        if self._count == self.total:
            raise RuntimeError("Image is complete; no further writes accepted.")

    def _advance(self, n: int) -> None:
        self._count += n
        if self._count == self.total:
            self._pixels.flags.writeable = False
            self._done.notify_all()

    def _notify(self, n: int) -> None:
        for fn in self._listeners:
            fn(n)

    def submit(self, result) -> None:
        x, y = result.x, result.y
        r, g, b = result.rgb
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x},{y}) outside {self.width}x{self.height} image.")
        with self._lock:
            self._check_open()
            if self._written[y, x]:
                raise ValueError(f"Pixel ({x},{y}) already written.")
            self._pixels[y, x] = (r, g, b, OPAQUE)
            self._written[y, x] = True
            self._advance(1)
        self._notify(1)

    def submit_rows(self, y0: int, rows: np.ndarray) -> None:
        """Write whole rows ``y0 .. y0 + len(rows)`` from an (n, W, 3) RGB band."""
        n = rows.shape[0]
        if rows.shape[1:] != (self.width, 3):
            raise ValueError(f"Band shape {rows.shape} does not match image width {self.width}.")
        if y0 < 0 or y0 + n > self.height:
            raise IndexError(f"Rows {y0}..{y0 + n} outside image height {self.height}.")
        with self._lock:
            self._check_open()
            if self._written[y0:y0 + n].any():
                raise ValueError(f"Rows {y0}..{y0 + n} overlap already written pixels.")
            self._pixels[y0:y0 + n, :, :3] = rows
            self._pixels[y0:y0 + n, :, 3] = OPAQUE
            self._written[y0:y0 + n] = True
            self._advance(n * self.width)
        self._notify(n * self.width)

    def interrupt(self) -> None:
        """Wake every ``wait`` caller without completing the image."""
        with self._lock:
            self._interrupted = True
            self._done.notify_all()

    def wait(self, cancel_event: Optional[threading.Event] = None, timeout: Optional[float] = None) -> bool:
        """
        Block until every cell is written. Returns False if woken early by
        ``interrupt``, a set ``cancel_event`` or the timeout.
        """
        def ready() -> bool:
            if self._count == self.total or self._interrupted:
                return True
            return cancel_event is not None and cancel_event.is_set()

        with self._done:
            self._done.wait_for(ready, timeout)
            return self._count == self.total

    def pixels(self) -> np.ndarray:
        with self._lock:
            if self._count != self.total:
                raise RuntimeError(f"Image incomplete: {self._count}/{self.total} pixels written.")
            return self._pixels

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels())
