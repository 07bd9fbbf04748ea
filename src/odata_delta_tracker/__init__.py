"""
OData Delta Tracker.

A Python library for walking server-paged OData v4 collections and tracking
their changes with delta links, built on aiohttp.
"""

from .client import ODataClient, validate_status_code
from .errors import (
    ConfigurationError,
    DecodingError,
    ODataError,
    TransportError,
    UnexpectedStatusError,
    UnsupportedServerVersionError,
)
from .models import (
    ContinuationState,
    CycleMetadata,
    ODataResponse,
    RequestDescriptor,
    TrackerState,
    TrackingSummary,
)
from .processors import CallbackProcessor, ODataCollectionProcessor, ResponseProcessor
from .tracker import CollectionIterator, DeltaTracker

__version__ = "0.1.0"

__all__ = [
    "ODataClient",
    "validate_status_code",
    "CollectionIterator",
    "DeltaTracker",
    "ResponseProcessor",
    "CallbackProcessor",
    "ODataCollectionProcessor",
    "ContinuationState",
    "CycleMetadata",
    "ODataResponse",
    "RequestDescriptor",
    "TrackerState",
    "TrackingSummary",
    "ODataError",
    "TransportError",
    "UnexpectedStatusError",
    "DecodingError",
    "ConfigurationError",
    "UnsupportedServerVersionError",
]
