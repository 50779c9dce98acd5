# color.py

import math
from typing import Tuple

from mandelpix.kernel.viewport import map_to_range

OPAQUE = 255
SENTINEL = (0, 0, 0)

_SUPPRESS_BELOW = 20.0
_SQRT_255 = math.sqrt(255.0)

def _channel(v: float) -> int:
    # Truncate toward zero into 0..255.
    return min(255, max(0, int(v)))

def color_of(iters: int, max_iterations: int) -> Tuple[int, int, int]:
    """
    Returns an (R, G, B) tuple for an escape count.

    Points that never escaped, and points whose scaled count falls below 20,
    are black. Otherwise red grows quadratically, green linearly and blue with
    the square root of the scaled count.
    """
    col = map_to_range(float(iters), 0.0, float(max_iterations), 0.0, 255.0)
    if iters == max_iterations or col < _SUPPRESS_BELOW:
        col = 0.0

    red = map_to_range(col * col, 0.0, 255.0 * 255.0, 0.0, 255.0)
    green = map_to_range(col / 2.0, 0.0, 127.5, 0.0, 255.0)
    blue = map_to_range(math.sqrt(col), 0.0, _SQRT_255, 0.0, 255.0)
    return (_channel(red), _channel(green), _channel(blue))
