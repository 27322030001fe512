#!/usr/bin/env python3
"""
Simtricks - Main Entry Point

Runs a matrix plugin headless: the plugin is driven at the requested frame
rate, its log output is printed and the last frame can be saved as an image.

Usage:
    python -m simtricks -x 16 -y 16 -p plugin.wasm
    python -m simtricks -x 16 -y 16 -p plugin.wasm --allow-host api.example.com
    python -m simtricks -x 16 -y 16 -p plugin.wasm --map-path ./data>/data --snapshot out.png
"""

import argparse
import logging
from typing import List, Optional

from simtricks import __version__
from simtricks.core import Controller, MatrixConfiguration, SandboxPolicy
from simtricks.core.config import ColorOrder, EnvSettings, load_env_settings

log = logging.getLogger("simtricks")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s : %(levelname)-8s : (%(name)s) %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser(settings: EnvSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simtricks", description="Simtricks - LED matrix plugin simulator"
    )
    parser.add_argument(
        "-x", "--width", type=int, default=settings.width, help="Width of the matrix, in LEDs"
    )
    parser.add_argument(
        "-y", "--height", type=int, default=settings.height, help="Height of the matrix, in LEDs"
    )
    parser.add_argument("-p", "--path", required=True, help="Path to the plugin")
    parser.add_argument(
        "-f",
        "--fps",
        type=float,
        default=settings.fps,
        help=f"Frames per second at which to run the plugin (default: {settings.fps:g})",
    )
    parser.add_argument(
        "--allow-host",
        action="append",
        default=[],
        metavar="HOST",
        help="Add a host that the plugin may connect to (repeatable)",
    )
    parser.add_argument(
        "--map-path",
        action="append",
        default=[],
        metavar="LOCAL>PLUGIN",
        help="Map a local path into the plugin filesystem (repeatable)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Seconds to run before stopping (default: until the plugin finishes)",
    )
    parser.add_argument(
        "--paused",
        action="store_true",
        help="Start paused and generate a single frame",
    )
    parser.add_argument(
        "--snapshot",
        default=None,
        metavar="PNG",
        help="Save the last frame to an image on exit",
    )
    parser.add_argument(
        "--color-order",
        type=ColorOrder,
        choices=list(ColorOrder),
        default=settings.color_order,
        help="Byte order of frame cells (default: %(default)s)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    settings = load_env_settings()
    args = build_parser(settings).parse_args(argv)
    setup_logging(settings.log_level)

    log.info(f"Starting Simtricks v{__version__}")

    try:
        config = MatrixConfiguration(
            width=args.width,
            height=args.height,
            target_rate=args.fps,
            serpentine=settings.serpentine,
            brightness=settings.brightness,
            magnification=settings.magnification,
        )
        policy = SandboxPolicy.from_args(args.allow_host, args.map_path)
    except ValueError as e:
        log.error(f"Invalid configuration: {e}")
        return 2

    log.info(
        f"Matrix {config.width}x{config.height} ({config.led_count} LEDs) "
        f"at {config.target_rate:g} fps"
    )

    controller = Controller(args.path, config, policy, autoplay=not args.paused)
    controller.on_log(print)

    if args.paused:
        controller.start()
        controller.step()
        controller.run(duration=args.duration if args.duration is not None else 1.0)
    else:
        controller.run(duration=args.duration)

    log.info(f"Received {controller.frame_count} frames")

    if args.snapshot:
        image = controller.frame.to_image(
            color_order=args.color_order,
            magnification=config.magnification,
            brightness=config.brightness,
        )
        image.save(args.snapshot)
        log.info(f"Saved last frame to {args.snapshot}")

    log.info("Exiting Simtricks.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
