import json
import os
import platform
import subprocess
import sys
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import importlib.metadata as importlib_metadata

_PACKAGES = ["numpy", "Pillow", "tqdm"]

@dataclass(frozen=True)
class RunManifest:
    started_utc: str
    settings: Dict[str, Any]
    renderer: Dict[str, Any]
    output: Optional[str]
    pixels_sha256: str
    elapsed_seconds: float
    python: Dict[str, Any]
    packages: Dict[str, str]
    git: Dict[str, Any]
    system: Dict[str, Any]

def _utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())

def _safe_pkg_version(name: str) -> Optional[str]:
    try:
        return importlib_metadata.version(name)
    except importlib_metadata.PackageNotFoundError:
        return None

def _git_commit() -> Optional[str]:
    try:
        r = subprocess.run(["git", "rev-parse", "HEAD"], capture_output=True, text=True, check=True)
        return r.stdout.strip()
    except (OSError, subprocess.CalledProcessError):
        return None

def build_manifest(
    *,
    settings: Dict[str, Any],
    renderer_info: Dict[str, Any],
    output: Optional[str],
    pixels_sha256: str,
    elapsed_seconds: float,
) -> RunManifest:
    pkgs = {}
    for name in _PACKAGES:
        v = _safe_pkg_version(name)
        if v:
            pkgs[name] = v

    return RunManifest(
        started_utc=_utc_iso(),
        settings=settings,
        renderer=renderer_info,
        output=output,
        pixels_sha256=pixels_sha256,
        elapsed_seconds=round(elapsed_seconds, 3),
        python={"version": sys.version, "executable": sys.executable},
        packages=pkgs,
        git={"commit": _git_commit()},
        system={"platform": platform.platform(), "machine": platform.machine(), "cpu_count": os.cpu_count()},
    )

def write_manifest(path: str, manifest: RunManifest) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(manifest), f, indent=2, sort_keys=True)
