#!/usr/bin/env python3
"""
PNGTuber Overlay Launcher

Starts the overlay server (or a headless session) that turns microphone
or OBS input volume into mouth open/closed events.

Usage:
    python -m pngtuber                          # Overlay server, mic enabled from the overlay
    python -m pngtuber --obs                    # Read volume from OBS, mic as fallback
    python -m pngtuber --query "threshold=40&obs=true&source=Mic/Aux"
    python -m pngtuber --headless               # No server, log talk state only
    python -m pngtuber --help                   # Show help
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

import yaml

from .utils.config_loader import (
    DEFAULT_CONFIG_PATH,
    AvatarConfig,
    apply_query_params,
    clamp_threshold,
    load_config,
    resolve_config,
)

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="PNGTuber - audio-reactive avatar for streaming overlays"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to config.yaml (default: config/config.yaml)"
    )
    parser.add_argument(
        "--query", "-q",
        default="",
        help="URL-style overrides, e.g. 'threshold=40&skin=f5d0c5&obs=true'"
    )
    parser.add_argument(
        "--obs",
        action="store_true",
        help="Read input volume from OBS WebSocket, fall back to the microphone"
    )
    parser.add_argument(
        "--threshold", "-t",
        type=int,
        help="Talk threshold 0-100 (lower = more sensitive)"
    )
    parser.add_argument("--remote-port", help="OBS WebSocket port (default: 4455)")
    parser.add_argument("--password", help="OBS WebSocket password")
    parser.add_argument("--source", help="OBS input name to read (default: Mic/Aux)")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without the overlay server and start capture immediately"
    )
    parser.add_argument("--host", help="Overlay server host (default: 127.0.0.1)")
    parser.add_argument("--http-port", type=int, help="Overlay server port (default: 8000)")
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AvatarConfig:
    """Resolve config file, then query string, then command-line flags."""
    raw = load_config(args.config) if args.config.exists() else {}
    if not raw:
        logger.warning(f"Config file not found or empty: {args.config}, using defaults")
    config = resolve_config(raw)

    if args.query:
        config = apply_query_params(config, args.query)

    updates = {}
    if args.obs:
        updates["obs_mode"] = True
    if args.threshold is not None:
        updates["threshold"] = clamp_threshold(args.threshold)
    if args.remote_port:
        updates["remote_port"] = str(args.remote_port)
    if args.password is not None:
        updates["remote_password"] = args.password
    if args.source:
        updates["remote_source_name"] = args.source
    if args.host or args.http_port:
        updates["server"] = replace(
            config.server,
            host=args.host or config.server.host,
            port=args.http_port or config.server.port,
        )
    if args.debug:
        updates["log_level"] = "DEBUG"

    return replace(config, **updates)


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # Reduce noise from the websockets and uvicorn access loggers
    logging.getLogger('websockets').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


async def run_headless(config: AvatarConfig):
    """Run a session with the logging presenter until interrupted."""
    from .presenter.base import LoggingPresenter
    from .session.session import AvatarSession

    session = AvatarSession(config, LoggingPresenter(log_volume=True))
    await session.start(auto_capture=True)
    try:
        while True:
            await asyncio.sleep(0.5)
    finally:
        await session.stop()


def main(argv=None):
    args = parse_args(argv)

    try:
        config = build_config(args)
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        print(f"❌ Could not load configuration: {e}")
        sys.exit(1)

    setup_logging(config.log_level)

    logger.info("=" * 50)
    logger.info("🎭 PNGTuber Overlay")
    logger.info("=" * 50)
    logger.info(f"   Threshold: {config.threshold}")
    logger.info(f"   Source: {'OBS ' + repr(config.remote_source_name) if config.obs_mode else 'microphone'}")
    if not args.headless:
        logger.info(f"   Server: http://{config.server.host}:{config.server.port}")
    logger.info("=" * 50)

    try:
        if args.headless:
            asyncio.run(run_headless(config))
        else:
            import uvicorn
            from .server.app import create_app

            uvicorn.run(
                create_app(config),
                host=config.server.host,
                port=config.server.port,
                log_level=config.log_level.lower(),
            )
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
