#!/usr/bin/env python3
"""
Basic Usage Example

Retrieves a complete collection once, following server-driven paging, and
prints the name of every entity received.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List

from dotenv import load_dotenv

from odata_delta_tracker import ODataClient, ODataCollectionProcessor
from odata_delta_tracker.auth import build_authorization_header
from odata_delta_tracker.tm1 import check_server_version

load_dotenv()
logging.basicConfig(level=logging.WARNING)


class NamePrinter(ODataCollectionProcessor):
    """Prints the Name of every entity in the collection."""

    async def handle_entities(self, entities: List[Dict[str, Any]]) -> None:
        for entity in entities:
            print(f"  • {entity.get('Name', '<unnamed>')}")


async def main():
    service_root_url = os.environ["TM1_SERVICE_ROOT_URL"]

    async with ODataClient(service_root_url, verify_ssl=False) as client:
        authorization = build_authorization_header(
            os.getenv("TM1_AUTHENTICATION", "TM1"),
            os.getenv("TM1_USER", ""),
            os.getenv("TM1_PASSWORD", ""),
            os.getenv("TM1_CAM_NAMESPACE", ""),
        )
        version = await check_server_version(client, authorization)
        print(f"Connected to server version {version}")

        print("Cubes:")
        processor = NamePrinter()
        pages = await client.iterate_collection("Cubes?$select=Name", processor)
        print(f"{processor.entities_processed} cubes received in {pages} page(s)")


if __name__ == "__main__":
    asyncio.run(main())
