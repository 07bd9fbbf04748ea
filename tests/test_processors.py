"""Test response processors."""

import json

import pytest

from odata_delta_tracker.errors import DecodingError
from odata_delta_tracker.models import ContinuationState
from odata_delta_tracker.processors import (
    CallbackProcessor,
    ODataCollectionProcessor,
    ResponseProcessor,
    as_processor,
    to_continuation_state,
)


def encode(payload) -> bytes:
    return json.dumps(payload).encode()


class TestToContinuationState:
    def test_passes_state_through(self):
        state = ContinuationState(next_link="p2")
        assert to_continuation_state(state) is state

    def test_tuple(self):
        assert to_continuation_state(("", "d1")) == ContinuationState(delta_link="d1")

    def test_string_is_next_link(self):
        assert to_continuation_state("p2") == ContinuationState(next_link="p2")
        assert to_continuation_state("").is_exhausted
        assert to_continuation_state(None).is_exhausted

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            to_continuation_state(42)


class TestAsProcessor:
    def test_processor_instance_kept(self):
        processor = ODataCollectionProcessor()
        assert as_processor(processor) is processor

    def test_callable_wrapped(self):
        assert isinstance(as_processor(lambda body: ""), CallbackProcessor)

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            as_processor("not a processor")


@pytest.mark.asyncio
class TestProcessors:
    async def test_base_class_not_implemented(self):
        with pytest.raises(NotImplementedError):
            await ResponseProcessor().process(b"{}")

    async def test_callback_sync_and_async(self):
        sync = CallbackProcessor(lambda body: ("p2", None))

        async def async_callback(body):
            return ContinuationState(delta_link=body.decode())

        assert await sync.process(b"") == ContinuationState(next_link="p2")
        assert await CallbackProcessor(async_callback).process(b"d1") == ContinuationState(
            delta_link="d1"
        )

    async def test_collection_processor_reads_links_and_entities(self):
        seen = []

        class Recorder(ODataCollectionProcessor):
            async def handle_entities(self, entities):
                seen.extend(entities)

        processor = Recorder()
        state = await processor.process(
            encode(
                {
                    "@odata.context": "$metadata#MessageLogEntries",
                    "value": [{"id": 1}, {"id": 2}],
                    "@odata.nextLink": "MessageLogEntries?$skiptoken=2",
                }
            )
        )

        assert state == ContinuationState(next_link="MessageLogEntries?$skiptoken=2")
        assert seen == [{"id": 1}, {"id": 2}]
        assert processor.responses_processed == 1
        assert processor.entities_processed == 2

    async def test_collection_processor_delta_link(self):
        state = await ODataCollectionProcessor().process(
            encode({"value": [], "@odata.deltaLink": "MessageLogEntries?$deltatoken=9"})
        )
        assert state.has_delta_link
        assert not state.has_next_page

    async def test_empty_links_are_exhausted(self):
        state = await ODataCollectionProcessor().process(
            encode({"value": [], "@odata.nextLink": "", "@odata.deltaLink": ""})
        )
        assert state.is_exhausted

    async def test_missing_value_is_empty(self):
        processor = ODataCollectionProcessor()
        await processor.process(encode({"@odata.deltaLink": "d1"}))
        assert processor.entities_processed == 0

    @pytest.mark.parametrize(
        "body",
        [
            b"<html>Service Unavailable</html>",
            b"[1, 2, 3]",
            b'{"value": {"id": 1}}',
            b'{"value": [], "@odata.nextLink": 5}',
            b'{"value": ["oops"]}',
            b'{"value": [{"id": 1}, null]}',
        ],
    )
    async def test_invalid_bodies_raise_decoding_error(self, body):
        with pytest.raises(DecodingError):
            await ODataCollectionProcessor().process(body)

    async def test_decoding_error_includes_excerpt(self):
        with pytest.raises(DecodingError) as exc_info:
            await ODataCollectionProcessor().process(b"not json at all")

        assert "not json at all" in str(exc_info.value)
        assert exc_info.value.body == b"not json at all"
