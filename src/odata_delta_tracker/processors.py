"""
Response processors turn a raw response body into a continuation state.

The tracker knows nothing about the payload it fetches; everything it needs to
decide its next step comes back from ``ResponseProcessor.process``.
"""

import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from .errors import DecodingError
from .models import ContinuationState

logger = logging.getLogger(__name__)

NEXT_LINK_KEY = "@odata.nextLink"
DELTA_LINK_KEY = "@odata.deltaLink"


class ResponseProcessor:
    """Abstract base class for response processors."""

    async def process(self, body: bytes) -> ContinuationState:
        """
        Consume one response body.

        Args:
            body: The raw bytes of a successful collection response

        Returns:
            The next-page and delta links found in the body
        """
        logger.debug("ResponseProcessor.process() not implemented")
        raise NotImplementedError


class CallbackProcessor(ResponseProcessor):
    """
    Adapts a plain function to the processor interface.

    The callback may be sync or async and may return a ``ContinuationState``,
    a ``(next_link, delta_link)`` tuple, or just the next link.
    """

    def __init__(self, callback: Callable[[bytes], Any]):
        self.callback = callback

    async def process(self, body: bytes) -> ContinuationState:
        result = self.callback(body)
        if inspect.isawaitable(result):
            result = await result
        return to_continuation_state(result)


def to_continuation_state(result: Any) -> ContinuationState:
    """Normalise whatever a callback returned into a ``ContinuationState``."""
    if isinstance(result, ContinuationState):
        return result
    if isinstance(result, tuple) and len(result) == 2:
        return ContinuationState(next_link=result[0] or None, delta_link=result[1] or None)
    if result is None or isinstance(result, str):
        return ContinuationState(next_link=result or None)
    raise TypeError(
        f"Processor callback returned {type(result).__name__}; expected "
        "ContinuationState, (next_link, delta_link) or a next link string"
    )


def as_processor(processor: Any) -> ResponseProcessor:
    """Accept either a ``ResponseProcessor`` or a plain callable."""
    if isinstance(processor, ResponseProcessor):
        return processor
    if callable(processor):
        return CallbackProcessor(processor)
    raise TypeError(f"Not a response processor: {processor!r}")


class ODataCollectionProcessor(ResponseProcessor):
    """
    Decodes standard OData JSON collection responses.

    The entities found in ``value`` are handed to ``handle_entities``, which
    subclasses override to do something useful with them.
    """

    def __init__(self) -> None:
        self.responses_processed = 0
        self.entities_processed = 0

    def decode(self, body: bytes) -> Dict[str, Any]:
        """Parse the body and check the fields the tracker depends on."""
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise DecodingError(f"Response is not valid JSON: {e}", body) from e

        if not isinstance(payload, dict):
            raise DecodingError("Response is not a JSON object", body)

        for key in (NEXT_LINK_KEY, DELTA_LINK_KEY):
            value = payload.get(key)
            if value is not None and not isinstance(value, str):
                raise DecodingError(f"{key} is not a string", body)

        entities = payload.get("value", [])
        if not isinstance(entities, list):
            raise DecodingError("value is not a JSON array", body)
        if any(not isinstance(entity, dict) for entity in entities):
            raise DecodingError("value contains an entity that is not a JSON object", body)

        return payload

    async def process(self, body: bytes) -> ContinuationState:
        payload = self.decode(body)
        entities: List[Dict[str, Any]] = payload.get("value", [])

        await self.handle_entities(entities)

        self.responses_processed += 1
        self.entities_processed += len(entities)
        logger.debug(
            f"Processed response {self.responses_processed} "
            f"with {len(entities)} entities"
        )

        return extract_links(payload)

    async def handle_entities(self, entities: List[Dict[str, Any]]) -> None:
        """Hook for subclasses. Default implementation does nothing."""
        pass


def extract_links(payload: Dict[str, Any]) -> ContinuationState:
    """Read the continuation links from an already decoded payload."""
    next_link: Optional[str] = payload.get(NEXT_LINK_KEY) or None
    delta_link: Optional[str] = payload.get(DELTA_LINK_KEY) or None
    return ContinuationState(next_link=next_link, delta_link=delta_link)
