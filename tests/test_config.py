import json

import pytest

from mandelpix.config import (
    DEFAULT_CONFIG,
    REFERENCE_SETTINGS,
    ViewportSettings,
    load_config,
    normalise_config,
    settings_from_config,
)

def test_defaults_reproduce_original_viewport():
    s = settings_from_config(normalise_config(load_config(None)))
    assert (s.width, s.height) == (800, 800)
    assert (s.plane_min, s.plane_max) == (-1.0, 1.0)
    assert s.max_iterations == 200
    assert s.center == (0.5, 0.0)

def test_reference_settings():
    assert REFERENCE_SETTINGS.pixel_count == 640_000
    assert (REFERENCE_SETTINGS.plane_min, REFERENCE_SETTINGS.plane_max) == (-2.84, 2.04)
    assert REFERENCE_SETTINGS.center == (0.0, 0.0)

def test_load_config_merges_over_defaults(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"width": 64, "height": "32", "center": [0, 0.25], "renderer": "threads"}))
    cfg = normalise_config(load_config(str(path)))
    assert cfg["width"] == 64
    assert cfg["height"] == 32
    assert cfg["center"] == [0.0, 0.25]
    assert cfg["renderer"] == "threads"
    assert cfg["max_iterations"] == DEFAULT_CONFIG["max_iterations"]

def test_load_config_rejects_non_object(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_config(str(path))

@pytest.mark.parametrize("override", [
    {"width": 0},
    {"max_iterations": -5},
    {"center": [1.0]},
    {"renderer": "gpu"},
    {"on_pixel_error": "ignore"},
    {"workers": 0},
])
def test_normalise_config_rejects_bad_values(override):
    cfg = dict(DEFAULT_CONFIG)
    cfg.update(override)
    with pytest.raises(ValueError):
        normalise_config(cfg)

def test_normalise_config_requires_fields():
    cfg = dict(DEFAULT_CONFIG)
    del cfg["plane_max"]
    with pytest.raises(ValueError, match="plane_max"):
        normalise_config(cfg)

@pytest.mark.parametrize("kwargs", [
    {"plane_min": 1.0, "plane_max": 1.0},
    {"plane_min": 2.0, "plane_max": -2.0},
    {"plane_min": float("nan"), "plane_max": 1.0},
    {"width": 0},
    {"max_iterations": 0},
])
def test_viewport_settings_fail_fast(kwargs):
    base = dict(width=10, height=10, plane_min=-1.0, plane_max=1.0, max_iterations=10)
    base.update(kwargs)
    with pytest.raises(ValueError):
        ViewportSettings(**base)

def test_settings_round_trip_to_dict():
    s = ViewportSettings(width=4, height=3, plane_min=-1.0, plane_max=1.0, max_iterations=9, center=(0.1, 0.2))
    d = s.to_dict()
    assert d["center"] == [0.1, 0.2]
    assert settings_from_config(d) == s
