from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Union

import numpy as np
from PIL import Image

@dataclass(frozen=True)
class ComparisonReport:
    width: int
    height: int
    mismatched: int
    max_channel_delta: int

    @property
    def matches(self) -> bool:
        return self.mismatched == 0

def load_reference(path) -> np.ndarray:
    with Image.open(path) as img:
        return np.asarray(img.convert("RGBA"))

def compare_to_reference(pixels: np.ndarray, reference: Union[str, np.ndarray]) -> ComparisonReport:
    """Pixel-by-pixel comparison of a rendered RGBA buffer with a golden image."""
    ref = reference if isinstance(reference, np.ndarray) else load_reference(reference)
    if ref.shape != pixels.shape:
        raise ValueError(f"Reference is {ref.shape}, rendered image is {pixels.shape}.")
    delta = np.abs(pixels.astype(np.int16) - ref.astype(np.int16))
    mismatched = int(np.count_nonzero(delta.any(axis=2)))
    return ComparisonReport(
        width=pixels.shape[1],
        height=pixels.shape[0],
        mismatched=mismatched,
        max_channel_delta=int(delta.max()) if delta.size else 0,
    )

def sha256_of_pixels(pixels: np.ndarray) -> str:
    h = hashlib.sha256()
    h.update(repr(pixels.shape).encode("ascii"))
    h.update(np.ascontiguousarray(pixels).tobytes())
    return h.hexdigest()
