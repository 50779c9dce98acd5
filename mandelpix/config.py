import json
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

RENDERER_CHOICES = ("auto", "sequential", "threads", "processes")

@dataclass(frozen=True)
class ViewportSettings:
    width: int
    height: int
    plane_min: float
    plane_max: float
    max_iterations: int
    center: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError("width/height must be positive.")
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive.")
        values = (self.plane_min, self.plane_max, self.center[0], self.center[1])
        if not all(math.isfinite(v) for v in values):
            raise ValueError("plane bounds and center must be finite.")
        if not self.plane_min < self.plane_max:
            raise ValueError(f"plane_min must be below plane_max (got {self.plane_min}..{self.plane_max}).")

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["center"] = list(self.center)
        return d

# The published reference image was rendered with these values.
REFERENCE_SETTINGS = ViewportSettings(width=800, height=800, plane_min=-2.84, plane_max=2.04, max_iterations=200)

DEFAULT_CONFIG: Dict[str, Any] = {
    "width": 800,
    "height": 800,
    "plane_min": -1.0,
    "plane_max": 1.0,
    "max_iterations": 200,
    "center": [0.5, 0.0],
    "output": "mandelbrot.png",
    "renderer": "auto",
    "workers": None,
    "on_pixel_error": "sentinel",
}

def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    if config_path:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            raise ValueError("Config JSON must be an object.")
        merged = dict(DEFAULT_CONFIG)
        merged.update(cfg)
        return merged
    return dict(DEFAULT_CONFIG)

def normalise_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    required = ["width", "height", "plane_min", "plane_max", "max_iterations"]
    for r in required:
        if r not in cfg:
            raise ValueError(f"Missing config field: {r}")

    width = int(cfg["width"])
    height = int(cfg["height"])
    max_iterations = int(cfg["max_iterations"])
    if width <= 0 or height <= 0 or max_iterations <= 0:
        raise ValueError("width/height/max_iterations must be positive.")

    center = cfg.get("center") or [0.0, 0.0]
    if not (isinstance(center, (list, tuple)) and len(center) == 2):
        raise ValueError("center must be [re, im].")

    renderer = str(cfg.get("renderer") or "auto")
    if renderer not in RENDERER_CHOICES:
        raise ValueError(f"renderer must be one of: {', '.join(RENDERER_CHOICES)}")

    on_pixel_error = str(cfg.get("on_pixel_error") or "sentinel")
    if on_pixel_error not in ("sentinel", "raise"):
        raise ValueError("on_pixel_error must be 'sentinel' or 'raise'.")

    workers = cfg.get("workers")
    if workers is not None:
        workers = int(workers)
        if workers <= 0:
            raise ValueError("workers must be positive.")

    out = dict(cfg)
    out["width"] = width
    out["height"] = height
    out["max_iterations"] = max_iterations
    out["plane_min"] = float(cfg["plane_min"])
    out["plane_max"] = float(cfg["plane_max"])
    out["center"] = [float(center[0]), float(center[1])]
    out["output"] = str(cfg.get("output") or "mandelbrot.png")
    out["renderer"] = renderer
    out["workers"] = workers
    out["on_pixel_error"] = on_pixel_error
    return out

def settings_from_config(cfg: Dict[str, Any]) -> ViewportSettings:
    return ViewportSettings(
        width=int(cfg["width"]),
        height=int(cfg["height"]),
        plane_min=float(cfg["plane_min"]),
        plane_max=float(cfg["plane_max"]),
        max_iterations=int(cfg["max_iterations"]),
        center=(float(cfg["center"][0]), float(cfg["center"][1])),
    )
