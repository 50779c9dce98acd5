from __future__ import annotations

from typing import Tuple

def map_to_range(value: float, src_min: float, src_max: float, dst_min: float, dst_max: float) -> float:
    """Affine rescale of ``value`` from [src_min, src_max] onto [dst_min, dst_max]."""
    if src_max == src_min:
        raise ValueError(f"Degenerate source range: {src_min}..{src_max}")
    return (value - src_min) * (dst_max - dst_min) / (src_max - src_min) + dst_min

def pixel_to_plane(x: int, y: int, settings) -> Tuple[float, float]:
    # Both axes share the same plane bounds; the centre offset is subtracted.
    re = map_to_range(float(x), 0.0, float(settings.width), settings.plane_min, settings.plane_max)
    im = map_to_range(float(y), 0.0, float(settings.height), settings.plane_min, settings.plane_max)
    return re - settings.center[0], im - settings.center[1]
