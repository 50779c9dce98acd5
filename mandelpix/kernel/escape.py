from __future__ import annotations

ESCAPE_THRESHOLD = 2.0

def escape_count(x0: float, y0: float, max_iterations: int) -> int:
    """
    Number of steps of z -> z*z + c (c = x0 + y0*i, z starting at c) before the
    orbit escapes, or ``max_iterations`` if it never does.

    The escape test is ``re + im > 2`` rather than ``|z|^2 > 4``. Reference
    images were produced with the sum test, so it is kept as is.
    """
    x = x0
    y = y0
    iters = 0
    for _ in range(max_iterations):
        # Plain multiplication: overflow yields inf/nan instead of raising.
        x, y = x * x - y * y + x0, 2.0 * x * y + y0
        if x + y > ESCAPE_THRESHOLD:
            break
        iters += 1
    return iters
