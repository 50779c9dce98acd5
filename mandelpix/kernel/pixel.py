from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np

from mandelpix.kernel.color import SENTINEL, color_of
from mandelpix.kernel.escape import escape_count
from mandelpix.kernel.viewport import pixel_to_plane
from mandelpix.util.logging_setup import get_logger

ON_ERROR_CHOICES = ("sentinel", "raise")

@dataclass(frozen=True)
class PixelTask:
    x: int
    y: int

@dataclass(frozen=True)
class PixelResult:
    x: int
    y: int
    rgb: Tuple[int, int, int]

def iter_tasks(settings) -> Iterator[PixelTask]:
    for y in range(settings.height):
        for x in range(settings.width):
            yield PixelTask(x, y)

def _pixel_rgb(x: int, y: int, settings, on_error: str) -> Tuple[int, int, int]:
    try:
        re, im = pixel_to_plane(x, y, settings)
        iters = escape_count(re, im, settings.max_iterations)
        return color_of(iters, settings.max_iterations)
    except (ArithmeticError, ValueError):
        if on_error == "raise":
            raise
        get_logger().warning("Pixel (%s,%s) failed - using sentinel colour", x, y, exc_info=True)
        return SENTINEL

def evaluate_pixel(task: PixelTask, settings, on_error: str = "sentinel") -> PixelResult:
    """
    Colour of a single pixel.

    With ``on_error="sentinel"`` an arithmetic fault is logged and the pixel
    takes the escaped-to-zero colour, so one bad pixel never aborts the frame.
    With ``on_error="raise"`` the fault propagates.
    """
    return PixelResult(task.x, task.y, _pixel_rgb(task.x, task.y, settings, on_error))

def evaluate_rows(y0: int, y1: int, settings, on_error: str = "sentinel") -> np.ndarray:
    band = np.zeros((y1 - y0, settings.width, 3), dtype=np.uint8)
    for yi, y in enumerate(range(y0, y1)):
        for x in range(settings.width):
            band[yi, x] = _pixel_rgb(x, y, settings, on_error)
    return band
