import numpy as np

from mandelpix.kernel.color import color_of
from mandelpix.kernel.escape import escape_count
from mandelpix.kernel.viewport import pixel_to_plane

def expected_pixels(settings):
    """Sequential per-pixel rendering used as ground truth."""
    out = np.zeros((settings.height, settings.width, 4), dtype=np.uint8)
    for y in range(settings.height):
        for x in range(settings.width):
            re, im = pixel_to_plane(x, y, settings)
            r, g, b = color_of(escape_count(re, im, settings.max_iterations), settings.max_iterations)
            out[y, x] = (r, g, b, 255)
    return out
