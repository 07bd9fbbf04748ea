"""
Command line entry point: track the TM1 message log and time MDX views.

Usage:
    python -m odata_delta_tracker [--env-file PATH] [--verbose] [--collection NAME]
"""

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from typing import List, Optional

from .auth import build_authorization_header
from .client import ODataClient
from .config import TrackerConfig
from .errors import ODataError
from .models import TrackingSummary
from .tm1 import MdxViewTimingProcessor, check_server_version
from .tracker import DeltaTracker

logger = logging.getLogger("odata_delta_tracker")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="odata-delta-tracker",
        description="Track an OData collection and report MDX view creation times.",
    )
    parser.add_argument("--env-file", help="Path of the .env file to load")
    parser.add_argument(
        "--verbose", action="store_true", help="Log every request and response"
    )
    parser.add_argument(
        "--collection", help="Collection to track (default: TM1_TRACKER_COLLECTION)"
    )
    return parser.parse_args(argv)


def _install_signal_handlers(tracker: DeltaTracker) -> None:
    """Stop the tracker gracefully on SIGINT/SIGTERM where the loop supports it."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, tracker.stop)
        except (NotImplementedError, RuntimeError):
            pass


async def run(config: TrackerConfig) -> TrackingSummary:
    """Check the server and track ``config.collection`` until the run ends."""
    async with ODataClient(
        config.service_root_url,
        verify_ssl=config.verify_ssl,
        verbose=config.verbose,
    ) as client:
        authorization = build_authorization_header(
            config.auth_mode, config.user, config.password, config.cam_namespace
        )
        await check_server_version(client, authorization)

        tracker = DeltaTracker(
            client, MdxViewTimingProcessor(), interval=config.interval
        )
        _install_signal_handlers(tracker)
        logger.info(
            f"Tracking {config.collection} every {config.interval} seconds"
        )
        return await tracker.track(config.collection)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = TrackerConfig.from_env(args.env_file)
        if args.verbose:
            config = dataclasses.replace(config, verbose=True)
        if args.collection:
            config = dataclasses.replace(config, collection=args.collection)
        asyncio.run(run(config))
    except ODataError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
