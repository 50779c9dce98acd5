import logging

import pytest

from mandelpix.config import ViewportSettings

@pytest.fixture
def small_settings():
    # Same plane as the reference frame, shrunk so tests stay fast.
    return ViewportSettings(width=48, height=36, plane_min=-2.84, plane_max=2.04, max_iterations=200)

@pytest.fixture
def centred_settings():
    return ViewportSettings(width=40, height=40, plane_min=-1.0, plane_max=1.0, max_iterations=200,
                            center=(0.5, 0.0))

@pytest.fixture(autouse=True)
def _restore_mandelpix_logger():
    logger = logging.getLogger("mandelpix")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)
    logger.propagate = propagate
