from __future__ import annotations

import argparse
import logging
import signal
from contextlib import contextmanager
from typing import Iterator, Optional

from mandelpix.config import (
    REFERENCE_SETTINGS,
    RENDERER_CHOICES,
    load_config,
    normalise_config,
    settings_from_config,
)
from mandelpix.image.png_writer import EncodeError
from mandelpix.image.reference import compare_to_reference, sha256_of_pixels
from mandelpix.pipeline import Orchestrator, RenderCancelled, RenderFailed
from mandelpix.util.logging_setup import configure_root_logging, get_logger, queue_logging
from mandelpix.util.manifest import build_manifest, write_manifest

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130

def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mandelpix", description="Parallel Mandelbrot still-frame renderer.")
    p.add_argument("--config", type=str, default=None, help="Path to config JSON. If omitted, built-in defaults are used.")
    p.add_argument("--renderer", type=str, default=None, choices=list(RENDERER_CHOICES), help="Renderer selection.")
    p.add_argument("--workers", type=int, default=None, help="Worker threads/processes (defaults to CPU count).")
    p.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level.")
    p.add_argument("--log-file", type=str, default="", help="Log file path (rotating). Empty disables file logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("render", help="Render the configured frame to a PNG file.")
    r.add_argument("--output", type=str, default=None, help="Override output from config.")
    r.add_argument("--progress", action="store_true", help="Show a progress bar.")
    r.add_argument("--manifest", type=str, default=None, help="Write a JSON run manifest to this path.")

    v = sub.add_parser("verify", help="Render and compare pixel-for-pixel with a golden PNG.")
    v.add_argument("--reference", type=str, required=True, help="Golden PNG to compare against.")
    v.add_argument("--use-config", action="store_true",
                   help="Render the configured viewport instead of the 800x800 reference viewport.")
    return p

@contextmanager
def _cancel_on_signals(orchestrator: Orchestrator) -> Iterator[None]:
    logger = get_logger()

    def handler(signum, frame):
        logger.warning("Received signal %s - cancelling render", signum)
        orchestrator.cancel()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, handler)
    try:
        yield
    finally:
        for sig, h in previous.items():
            signal.signal(sig, h)

def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    log_file = args.log_file if args.log_file and args.log_file.strip() else None
    configure_root_logging(level=log_level, console=True, log_file=log_file)
    logger = get_logger()

    try:
        cfg = normalise_config(load_config(args.config))
        if args.renderer:
            cfg["renderer"] = args.renderer
        if args.workers is not None:
            cfg["workers"] = args.workers
        if args.cmd == "verify" and not args.use_config:
            settings = REFERENCE_SETTINGS
        else:
            settings = settings_from_config(cfg)
        if args.cmd == "render" and args.output:
            cfg["output"] = args.output
    except (OSError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG

    with queue_logging() as log_queue:
        try:
            orchestrator = Orchestrator(
                settings,
                renderer=cfg["renderer"],
                workers=cfg["workers"],
                on_error=cfg["on_pixel_error"],
                progress=getattr(args, "progress", False),
                log_queue=log_queue,
                log_level=log_level,
            )
        except ValueError as e:
            logger.error("Invalid configuration: %s", e)
            return EXIT_CONFIG

        try:
            with _cancel_on_signals(orchestrator):
                if args.cmd == "render":
                    sink = orchestrator.run_to(cfg["output"])
                else:
                    sink = orchestrator.run()
        except RenderCancelled as e:
            logger.warning("%s", e)
            return EXIT_CANCELLED
        except (RenderFailed, EncodeError) as e:
            logger.error("%s", e)
            return EXIT_FAILED

    pixels = sink.pixels()

    if args.cmd == "render":
        if args.manifest:
            manifest = build_manifest(
                settings=settings.to_dict(),
                renderer_info=orchestrator.renderer_info(),
                output=cfg["output"],
                pixels_sha256=sha256_of_pixels(pixels),
                elapsed_seconds=orchestrator.elapsed,
            )
            write_manifest(args.manifest, manifest)
            logger.info("Run manifest written: %s", args.manifest)
        return EXIT_OK

    try:
        report = compare_to_reference(pixels, args.reference)
    except (OSError, ValueError) as e:
        logger.error("Cannot compare with %s: %s", args.reference, e)
        return EXIT_FAILED
    if report.matches:
        logger.info("Image matches %s (%sx%s)", args.reference, report.width, report.height)
        return EXIT_OK
    logger.error("Image differs from %s: %s mismatched pixels, max channel delta %s",
                 args.reference, report.mismatched, report.max_channel_delta)
    return EXIT_FAILED
