"""
Collection iteration and change tracking for OData collections.

``CollectionIterator`` follows ``@odata.nextLink`` until a collection has been
retrieved completely. ``DeltaTracker`` does the same while asking the server
to track changes, and once the collection is exhausted keeps polling the
``@odata.deltaLink`` it was handed, waiting a fixed interval between polls.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional

from .client import ODataClient, validate_status_code
from .models import CycleMetadata, RequestDescriptor, TrackerState, TrackingSummary
from .processors import as_processor

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0


class CollectionIterator:
    """Retrieves every page of a single collection, without delays."""

    def __init__(
        self,
        client: ODataClient,
        processor: Any,
        logger_: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.processor = as_processor(processor)
        self.logger = logger_ or logger

    async def iterate(self, collection_path: str) -> int:
        """
        Fetch ``collection_path`` and every page that follows it.

        Returns:
            Number of responses handed to the processor
        """
        pages = 0
        link: Optional[str] = collection_path
        while link:
            response = await self.client.execute_get(self.client.url_for(link))
            validate_status_code(
                response,
                200,
                f"Server responded with an unexpected result while retrieving {link}.",
            )
            continuation = await self.processor.process(response.body)
            pages += 1
            link = continuation.next_link
            if link:
                self.logger.debug(f"Following next page link: {link}")

        self.logger.debug(f"Collection {collection_path} exhausted after {pages} pages")
        return pages


class DeltaTracker:
    """
    Tracks changes to a collection using the track-changes preference.

    The tracker starts out paginating through the full collection. Pages are
    requested back to back; when a response carries a delta link instead of a
    next link the tracker waits ``interval`` seconds and then requests the
    delta link. A next link always wins over a delta link returned in the
    same response. The run ends when a response carries neither, or when
    ``stop()`` is called.
    A tracker can be started again once a run has ended.

    Errors raised by the client, the status check or the processor are not
    caught: they end the run and propagate to the caller of ``track()``.
    """

    def __init__(
        self,
        client: ODataClient,
        processor: Any,
        interval: float = DEFAULT_INTERVAL,
        stop_event: Optional[asyncio.Event] = None,
        logger_: Optional[logging.Logger] = None,
    ):
        """
        Initialize the tracker.

        Args:
            client: Client used for every request
            processor: ``ResponseProcessor`` or callable consuming response bodies
            interval: Seconds to wait before each delta request
            stop_event: Event that ends the run when set; one is created if None.
                A stop requested through ``stop()`` only ends the current run, so
                the tracker can be started again. A caller supplied event is left
                set and ends every later run until the caller clears it.
        """
        if interval < 0:
            raise ValueError("interval must not be negative")

        self.client = client
        self.processor = as_processor(processor)
        self.interval = interval
        self.logger = logger_ or logger
        self.state = TrackerState.PAGINATING
        self.summary: Optional[TrackingSummary] = None
        self._stop_event = stop_event
        self._owns_stop_event = stop_event is None
        self._stop_requested = False
        self._stop_reason = ""

    def stop(self) -> None:
        """Ask the tracker to stop before its next request or during its wait."""
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested or (
            self._stop_event is not None and self._stop_event.is_set()
        )

    def _prefer_track_changes(self, request: RequestDescriptor) -> None:
        request.headers["Prefer"] = ODataClient.TRACK_CHANGES_PREFERENCE

    async def _delay(self, seconds: float) -> bool:
        """Wait between delta polls; returns True if a stop was requested meanwhile."""
        if self.stop_requested:
            return True
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def _clear_stop(self) -> None:
        self._stop_requested = False
        if self._owns_stop_event and self._stop_event is not None:
            self._stop_event.clear()

    def _transition(self, new_state: TrackerState) -> None:
        if new_state is not self.state:
            self.logger.debug(f"Tracker state {self.state.value} -> {new_state.value}")
        self.state = new_state

    async def cycles(
        self, collection_path: str
    ) -> AsyncGenerator[CycleMetadata, None]:
        """
        Run the tracking loop, yielding metadata after each processed response.

        Args:
            collection_path: Collection to track, relative to the service root

        Yields:
            ``CycleMetadata`` for every response handed to the processor
        """
        self.state = TrackerState.PAGINATING
        self._stop_reason = ""
        link = collection_path
        cycle = 0

        try:
            while True:
                if self.stop_requested:
                    self._stop_reason = "stop requested"
                    self._transition(TrackerState.STOPPED)
                    return

                url = self.client.url_for(link)
                response = await self.client.execute_get(
                    url, pre_request=self._prefer_track_changes
                )
                validate_status_code(
                    response,
                    200,
                    f"Server responded with an unexpected result while tracking {link}.",
                )
                continuation = await self.processor.process(response.body)
                cycle += 1
                ran_in = self.state

                if continuation.has_next_page:
                    if continuation.has_delta_link:
                        self.logger.warning(
                            "Response carries both a next link and a delta link; "
                            "following the next link"
                        )
                    link = continuation.next_link or ""
                    next_state = TrackerState.PAGINATING
                elif continuation.has_delta_link:
                    if continuation.delta_link != link:
                        self.logger.info(f"Received delta link: {continuation.delta_link}")
                    link = continuation.delta_link or ""
                    next_state = TrackerState.DELTA_WAITING
                else:
                    self.logger.info(
                        "Server returned neither a next link nor a delta link; "
                        "tracking stops"
                    )
                    self._stop_reason = "server stopped handing out delta links"
                    next_state = TrackerState.STOPPED

                self._transition(next_state)
                yield CycleMetadata(
                    cycle=cycle,
                    url=url,
                    state=ran_in,
                    continuation=continuation,
                    body_size=len(response.body),
                    next_state=next_state,
                )

                if next_state is TrackerState.STOPPED:
                    return
                if next_state is TrackerState.DELTA_WAITING:
                    if await self._delay(self.interval):
                        self._stop_reason = "stop requested"
                        self._transition(TrackerState.STOPPED)
                        return
        finally:
            self._clear_stop()

    async def track(self, collection_path: str) -> TrackingSummary:
        """
        Track a collection until the server or the caller ends the run.

        Returns:
            Summary of the requests issued during the run
        """
        self.summary = summary = TrackingSummary(start_time=datetime.now(timezone.utc))

        async for meta in self.cycles(collection_path):
            summary.requests += 1
            if meta.state is TrackerState.DELTA_WAITING:
                summary.delta_polls += 1
            else:
                summary.pages += 1
            summary.last_link = meta.url

        summary.finish(self._stop_reason)
        self.logger.info(str(summary))
        return summary
