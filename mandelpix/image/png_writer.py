from __future__ import annotations

import os
from typing import BinaryIO, Union

import numpy as np
from PIL import Image

from mandelpix.util.logging_setup import get_logger

Destination = Union[str, "os.PathLike[str]", BinaryIO]

class EncodeError(RuntimeError):
    pass

def _as_pixels(source) -> np.ndarray:
    if isinstance(source, np.ndarray):
        return source
    return source.pixels()

def encode_png(source, destination: Destination) -> None:
    """
    Serialise a completed image (an ``ImageSink`` or an (H, W, 4) uint8 array)
    as PNG into a file path or a writable binary stream.
    """
    logger = get_logger()
    pixels = _as_pixels(source)
    if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.dtype != np.uint8:
        raise ValueError(f"Expected an (H, W, 4) uint8 buffer, got {pixels.shape} {pixels.dtype}.")

    is_path = isinstance(destination, (str, os.PathLike))
    try:
        if is_path:
            parent = os.path.dirname(os.fspath(destination))
            if parent:
                os.makedirs(parent, exist_ok=True)
        Image.fromarray(pixels).save(destination, format="PNG")
    except (OSError, ValueError) as e:
        raise EncodeError(f"error writing mandelbrot image: {e}") from e

    h, w = pixels.shape[:2]
    logger.info("Image written %sx%s -> %s", w, h, os.fspath(destination) if is_path else "<stream>")
