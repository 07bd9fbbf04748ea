"""
Data models for OData collection iteration and change tracking.

This module contains dataclass definitions for the requests sent, the
responses received and the continuation state that drives the tracker.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Mapping, Optional


@dataclass
class RequestDescriptor:
    """A fully built request, handed to ``pre_request`` hooks before sending."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class ODataResponse:
    """Status, headers and fully read body of a single HTTP response."""

    status: int
    reason: Optional[str]
    headers: Mapping[str, str]
    body: bytes
    url: str = ""

    @property
    def status_line(self) -> str:
        """Status code and reason phrase, e.g. ``404 Not Found``."""
        return f"{self.status} {self.reason}" if self.reason else str(self.status)

    def text(self, encoding: str = "utf-8") -> str:
        """Body decoded as text, replacing undecodable bytes."""
        return self.body.decode(encoding, errors="replace")


@dataclass(frozen=True)
class ContinuationState:
    """The two continuation tokens extracted from one response body."""

    next_link: Optional[str] = None
    delta_link: Optional[str] = None

    @property
    def has_next_page(self) -> bool:
        return bool(self.next_link)

    @property
    def has_delta_link(self) -> bool:
        return bool(self.delta_link)

    @property
    def is_exhausted(self) -> bool:
        """True when the server hands out neither a next page nor a delta link."""
        return not self.next_link and not self.delta_link


class TrackerState(Enum):
    """States of the delta tracking loop."""

    PAGINATING = "paginating"
    DELTA_WAITING = "delta-waiting"
    STOPPED = "stopped"


@dataclass
class CycleMetadata:
    """Metadata for a single request/process cycle of the tracker."""

    cycle: int
    url: str
    state: TrackerState
    continuation: ContinuationState
    body_size: int
    next_state: TrackerState


@dataclass
class TrackingSummary:
    """Totals for a complete tracking run."""

    requests: int = 0
    pages: int = 0
    delta_polls: int = 0
    last_link: Optional[str] = None
    stop_reason: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if not self.start_time or not self.end_time:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def finish(self, stop_reason: str) -> None:
        """Record why and when the run ended."""
        self.stop_reason = stop_reason
        self.end_time = datetime.now(timezone.utc)

    def print_summary(self, title: str = "Tracking Summary") -> None:
        """Print a formatted summary of the run."""
        print(f"\n{title}:")
        print(f"  Requests issued: {self.requests}")
        print(f"  Pages fetched: {self.pages}")
        print(f"  Delta polls: {self.delta_polls}")
        print(f"  Duration: {self.duration_seconds:.2f} seconds")
        print(f"  Stopped because: {self.stop_reason or 'unknown'}")

    def __str__(self) -> str:
        return (
            f"TrackingSummary: {self.requests} requests "
            f"({self.pages} pages, {self.delta_polls} delta polls), "
            f"stopped: {self.stop_reason or 'unknown'}"
        )
