"""
TM1 specific helpers: server version check and a message log processor.

``MdxViewTimingProcessor`` is a sample consumer of the message log. It pairs
the two ``TM1.MdxViewCreate`` entries logged for every MDX view (the one
announcing the view and the one saying it was created) and writes the
duration in between as comma separated output.
"""

import logging
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, TextIO

from .client import ODataClient, validate_status_code
from .errors import DecodingError, UnsupportedServerVersionError
from .processors import ODataCollectionProcessor

logger = logging.getLogger(__name__)

# 10.2.2 FP5 introduced the track-changes preference on message and transaction logs
MINIMUM_VERSION = "10.2.20500"
PRODUCT_VERSION_PATH = "Configuration/ProductVersion/$value"

MDX_VIEW_CREATE_LOGGER = "TM1.MdxViewCreate"
VIEW_CREATED_MESSAGE = "View is created."

_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|z|[+-]\d{2}:\d{2})?$"
)
NANOS_PER_SECOND = 10**9


async def check_server_version(
    client: ODataClient,
    authorization: Optional[str] = None,
    minimum: str = MINIMUM_VERSION,
) -> str:
    """
    Request the product version, authenticating the session on the way.

    Args:
        client: Client whose session will hold the server session cookie
        authorization: Value for the ``Authorization`` header
        minimum: Oldest version that supports delta tracking

    Returns:
        The version string reported by the server

    Raises:
        UnexpectedStatusError: If the server does not answer with 200
        UnsupportedServerVersionError: If the server is older than ``minimum``
    """
    headers = {"Accept": "*/*"}
    if authorization:
        headers["Authorization"] = authorization

    response = await client.execute_get(
        client.url_for(PRODUCT_VERSION_PATH), headers=headers
    )
    validate_status_code(
        response,
        200,
        "Server responded with an unexpected result while asking for its version number.",
    )

    version = response.text().strip()
    if version[:10] < minimum:
        raise UnsupportedServerVersionError(version, minimum)

    logger.info(f"Server version: {version}")
    return version


@dataclass(frozen=True)
class LogTimestamp:
    """
    A message log time stamp with nanosecond precision.

    ``datetime`` stops at microseconds, so the whole seconds and the
    fraction are kept apart.
    """

    moment: datetime
    nanosecond: int = 0

    def seconds_since(self, start: "LogTimestamp") -> float:
        whole = (self.moment - start.moment) // timedelta(seconds=1)
        nanos = whole * NANOS_PER_SECOND + self.nanosecond - start.nanosecond
        return nanos / NANOS_PER_SECOND

    def __str__(self) -> str:
        return format_timestamp(self)


def parse_timestamp(value: str) -> Optional[LogTimestamp]:
    """Parse an RFC 3339 time stamp with up to nanosecond precision."""
    match = _TIMESTAMP.match(value.strip()) if value else None
    if match is None:
        return None

    base, fraction, zone = match.groups()
    if not zone or zone in ("Z", "z"):
        zone = "+00:00"
    try:
        moment = datetime.fromisoformat(base + zone)
    except ValueError:
        return None

    nanosecond = int(fraction[:9].ljust(9, "0")) if fraction else 0
    return LogTimestamp(moment=moment, nanosecond=nanosecond)


def format_timestamp(value: LogTimestamp) -> str:
    """
    Format a time stamp as RFC 3339 with nanoseconds.

    Trailing zeros of the fraction are dropped and a zero offset is written
    as ``Z``, e.g. ``2024-03-01T10:00:00.1Z``.
    """
    text = value.moment.strftime("%Y-%m-%dT%H:%M:%S")
    fraction = f"{value.nanosecond:09d}".rstrip("0")
    if fraction:
        text += "." + fraction
    if not value.moment.utcoffset():
        return text + "Z"
    return text + value.moment.isoformat()[19:]


@dataclass
class MessageLogEntry:
    """A single entry of the server message log."""

    session_id: int = 0
    thread_id: int = 0
    logger: str = ""
    level: str = ""
    timestamp: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageLogEntry":
        try:
            return cls(
                session_id=int(data.get("SessionID") or 0),
                thread_id=int(data.get("ThreadID") or 0),
                logger=data.get("Logger") or "",
                level=data.get("Level") or "",
                timestamp=data.get("TimeStamp") or "",
                message=data.get("Message") or "",
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise DecodingError(f"Invalid message log entry: {e}") from e


class MdxViewTimingProcessor(ODataCollectionProcessor):
    """
    Writes the time it took to create each MDX view.

    Output lines are ``QUERY,<count>,<start>,<end>,<seconds>``. Entries that
    arrive out of the expected order produce ``ERROR`` lines instead.
    """

    def __init__(self, output: Optional[TextIO] = None):
        super().__init__()
        self.output = output
        self.thread_map: Dict[int, Optional[LogTimestamp]] = {}
        self.query_count = 0

    def _emit(self, line: str) -> None:
        print(line, file=self.output or sys.stdout, flush=True)

    async def handle_entities(self, entities: List[Dict[str, Any]]) -> None:
        for raw in entities:
            self.handle_entry(MessageLogEntry.from_dict(raw))

    def handle_entry(self, entry: MessageLogEntry) -> None:
        if entry.logger != MDX_VIEW_CREATE_LOGGER:
            return

        recorded = entry.thread_id in self.thread_map
        entry_time = parse_timestamp(entry.timestamp)

        if entry.message == VIEW_CREATED_MESSAGE:
            self.query_count += 1
            if not recorded:
                self._emit(f"ERROR,{self.query_count},ERROR,ERROR,0.000")
                return

            start_time = self.thread_map.pop(entry.thread_id)
            if start_time is None or entry_time is None:
                self._emit(f"ERROR,{self.query_count},INVALID TIMESTAMP,ERROR,0.000")
                return

            duration = entry_time.seconds_since(start_time)
            self._emit(
                f"QUERY,{self.query_count},{format_timestamp(start_time)},"
                f"{format_timestamp(entry_time)},{duration:0.3f}"
            )
        elif recorded:
            self._emit(f"ERROR,{self.query_count},VIEW CREATED EXPECTED,ERROR,0.000")
        else:
            self.thread_map[entry.thread_id] = entry_time
