#!/usr/bin/env python3
"""
Delta Tracking Stream Example

Tracks the transaction log and shows, for every response, which state the
tracker was in and where it goes next. Press Ctrl+C to stop.
"""

import asyncio
import logging
import signal
from typing import Any, Dict, List

from odata_delta_tracker import DeltaTracker, ODataClient, ODataCollectionProcessor
from odata_delta_tracker.auth import build_authorization_header
from odata_delta_tracker.config import TrackerConfig
from odata_delta_tracker.tm1 import check_server_version

logging.basicConfig(level=logging.INFO)


class TransactionPrinter(ODataCollectionProcessor):
    """Prints cube, user and new value of every transaction log entry."""

    async def handle_entities(self, entities: List[Dict[str, Any]]) -> None:
        for entry in entities:
            print(
                f"{entry.get('TimeStamp')} {entry.get('User')} changed "
                f"{entry.get('Cube')} to {entry.get('NewValue')}"
            )


async def main():
    config = TrackerConfig.from_env()

    async with ODataClient(config.service_root_url, verify_ssl=config.verify_ssl) as client:
        await check_server_version(
            client,
            build_authorization_header(
                config.auth_mode, config.user, config.password, config.cam_namespace
            ),
        )

        tracker = DeltaTracker(client, TransactionPrinter(), interval=config.interval)
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, tracker.stop)

        async for meta in tracker.cycles("TransactionLogEntries"):
            print(
                f"📄 Response {meta.cycle}: {meta.body_size} bytes "
                f"({meta.state.value} -> {meta.next_state.value})"
            )


if __name__ == "__main__":
    asyncio.run(main())
