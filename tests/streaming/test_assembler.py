"""Tests for the stream assembler state machine."""

import asyncio
import json

import pytest

from wanderstream.streaming.assembler import (
    StreamAssembler,
    StreamCallbacks,
    UpdateKind,
    parse_stream_data,
)
from wanderstream.streaming.errors import ErrorCategory
from wanderstream.streaming.events import ChannelName
from wanderstream.streaming.router import DomainRouter
from wanderstream.streaming.session import (
    AccommodationData,
    CityResultData,
    DomainType,
    StreamPhase,
)

REAL_ID = "3f2b8c1e-6a4d-4e2f-9b7a-1c2d3e4f5a6b"


class RecordingCallbacks:
    """Collects every callback invocation in order."""

    def __init__(self):
        self.calls = []

    def on_progress(self, session):
        self.calls.append(("progress", session))

    def on_complete(self, session):
        self.calls.append(("complete", session))

    def on_error(self, message):
        self.calls.append(("error", message))

    def on_redirect(self, domain, data):
        self.calls.append(("redirect", (domain, data)))

    def bundle(self, redirect=True):
        return StreamCallbacks(
            on_progress=self.on_progress,
            on_complete=self.on_complete,
            on_error=self.on_error,
            on_redirect=self.on_redirect if redirect else None,
        )

    def kinds(self):
        return [kind for kind, _ in self.calls]


class RecordingReader:
    """Async byte reader that records whether it was released."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed or not self.chunks:
            raise StopAsyncIteration
        return self.chunks.pop(0)

    async def aclose(self):
        self.closed = True


async def collect(assembler, stream):
    return [update async for update in assembler.assemble(stream)]


class TestAssembleCityStream:
    """Test a full general-domain stream."""

    @pytest.mark.asyncio
    async def test_reconstructs_all_channels(self, sse, byte_stream, city_stream_events):
        """Test interleaved fragments fill every city slot."""
        assembler = StreamAssembler()
        updates = await collect(assembler, byte_stream(sse(city_stream_events)))

        assert [u.kind for u in updates] == [UpdateKind.PROGRESS] * 7 + [UpdateKind.COMPLETE]

        final = updates[-1].session
        assert final.session_id == "sess-1"
        assert final.city == "Lisbon"
        assert final.is_complete
        assert final.phase == StreamPhase.COMPLETED
        assert final.data.general_city_data["description"] == "City of {seven} hills"
        assert [p["name"] for p in final.data.points_of_interest] == ["Belém Tower", "Alfama"]
        assert final.data.itinerary_response["itinerary_name"] == "A day in Lisbon"
        assert updates[-1].progress == 100

    @pytest.mark.asyncio
    async def test_fragmentation_invariant_at_byte_level(self, sse, byte_stream, city_stream_events):
        """Test the final session is the same for any read size."""
        body = sse(city_stream_events)
        expected = None
        for size in (None, 1, 5, 64):
            assembler = StreamAssembler()
            updates = await collect(assembler, byte_stream(body, size))
            data = updates[-1].session.data_dict()
            if expected is None:
                expected = data
            assert data == expected

    @pytest.mark.asyncio
    async def test_progress_monotonic(self, sse, byte_stream, city_stream_events):
        assembler = StreamAssembler()
        updates = await collect(assembler, byte_stream(sse(city_stream_events)))
        progress = [u.progress for u in updates]
        assert progress == sorted(progress)
        assert updates[0].progress == 15

    @pytest.mark.asyncio
    async def test_two_fragment_points_of_interest(self, sse, chunk, byte_stream):
        """Test the POI object split in two chunk events."""
        assembler = StreamAssembler()
        updates = await collect(
            assembler,
            byte_stream(
                sse(
                    [
                        chunk("general_pois", '{"points_of_'),
                        chunk("general_pois", 'interest":[{"id":"1","name":"Tower"}]}'),
                    ]
                )
            ),
        )

        assert updates[0].session.data.points_of_interest is None
        assert updates[1].session.data.points_of_interest == [{"id": "1", "name": "Tower"}]
        assert assembler.stats.values_routed == 1

    @pytest.mark.asyncio
    async def test_snapshots_are_independent(self, sse, byte_stream):
        """Test earlier snapshots keep their shape after a pivot."""
        events = [
            {"type": "general_pois", "data": {"points_of_interest": [{"name": "A"}]}},
            {"type": "hotels", "data": {"hotels": [{"name": "H"}]}},
        ]
        updates = await collect(StreamAssembler(), byte_stream(sse(events)))

        assert isinstance(updates[0].session.data, CityResultData)
        assert updates[0].session.data.points_of_interest == [{"name": "A"}]
        assert isinstance(updates[1].session.data, AccommodationData)


class TestCompletion:
    """Test completion semantics."""

    @pytest.mark.asyncio
    async def test_complete_event_then_end_completes_once(self, sse, byte_stream):
        callbacks = RecordingCallbacks()
        assembler = StreamAssembler()

        await assembler.run(byte_stream(sse([{"type": "complete"}])), callbacks.bundle())

        assert callbacks.kinds().count("complete") == 1

    @pytest.mark.asyncio
    async def test_stream_end_without_complete_event(self, sse, byte_stream):
        """Test a body ending without a complete event still completes."""
        callbacks = RecordingCallbacks()
        assembler = StreamAssembler()
        body = sse([{"type": "start", "data": {"session_id": "s1"}}])

        session = await assembler.run(byte_stream(body), callbacks.bundle(redirect=False))

        assert callbacks.kinds() == ["progress", "complete"]
        assert session.is_complete

    @pytest.mark.asyncio
    async def test_events_after_complete_ignored(self, sse, byte_stream):
        events = [
            {"type": "complete"},
            {"type": "hotels", "data": {"hotels": [{"name": "late"}]}},
            {"type": "complete"},
        ]
        callbacks = RecordingCallbacks()
        session = await StreamAssembler().run(byte_stream(sse(events)), callbacks.bundle())

        assert callbacks.kinds() == ["complete", "redirect"]
        assert session.domain == DomainType.GENERAL

    @pytest.mark.asyncio
    async def test_malformed_frame_tolerated(self, byte_stream):
        """Test a malformed frame is dropped and completion still happens."""
        body = b'data: {not json}\n\ndata: {"type":"complete"}\n\n'
        callbacks = RecordingCallbacks()
        assembler = StreamAssembler()

        await assembler.run(byte_stream(body), callbacks.bundle(redirect=False))

        assert callbacks.kinds() == ["complete"]
        assert assembler.stats.frames_dropped == 1

    @pytest.mark.asyncio
    async def test_redirect_receives_domain_and_data(self, sse, byte_stream):
        events = [
            {"type": "start", "data": {"session_id": "s9"}},
            {"type": "hotels", "data": {"hotels": [{"name": "H"}]}},
            {"type": "complete"},
        ]
        callbacks = RecordingCallbacks()
        await StreamAssembler().run(byte_stream(sse(events)), callbacks.bundle())

        assert callbacks.kinds()[-2:] == ["complete", "redirect"]
        domain, data = callbacks.calls[-1][1]
        assert domain == DomainType.ACCOMMODATION
        assert data == {"domain": "accommodation", "session_id": "s9", "hotels": [{"name": "H"}]}

    @pytest.mark.asyncio
    async def test_async_callbacks_awaited(self, sse, byte_stream):
        seen = []

        async def on_complete(session):
            seen.append(session.is_complete)

        async def noop(*args):
            return None

        callbacks = StreamCallbacks(on_progress=noop, on_complete=on_complete, on_error=noop)
        await StreamAssembler().run(byte_stream(sse([{"type": "complete"}])), callbacks)

        assert seen == [True]


class TestErrors:
    """Test terminal error paths."""

    @pytest.mark.asyncio
    async def test_error_event_is_terminal(self, sse, byte_stream):
        """Test an error event reports once and suppresses completion."""
        events = [
            {"type": "general_pois", "data": {"points_of_interest": [{"name": "A"}]}},
            {"type": "error", "error": "Upstream quota exceeded"},
            {"type": "hotels", "data": {"hotels": []}},
            {"type": "complete"},
        ]
        callbacks = RecordingCallbacks()
        assembler = StreamAssembler()

        session = await assembler.run(byte_stream(sse(events)), callbacks.bundle())

        assert callbacks.kinds() == ["progress", "error"]
        assert callbacks.calls[-1][1] == "Upstream quota exceeded"
        assert session.phase == StreamPhase.ERRORED
        assert session.error == "Upstream quota exceeded"
        assert not session.is_complete
        assert session.data.points_of_interest == [{"name": "A"}]

    @pytest.mark.asyncio
    async def test_error_update_is_classified(self, sse, byte_stream):
        updates = await collect(
            StreamAssembler(), byte_stream(sse([{"type": "error", "error": "429 retry in 5s"}]))
        )
        assert updates[-1].kind == UpdateKind.ERROR
        assert updates[-1].parsed_error.category == ErrorCategory.RATE_LIMIT
        assert updates[-1].parsed_error.retry_after == 5

    @pytest.mark.asyncio
    async def test_error_event_without_message(self, sse, byte_stream):
        updates = await collect(StreamAssembler(), byte_stream(sse([{"type": "error"}])))
        assert updates[-1].error == "Unknown streaming error"

    @pytest.mark.asyncio
    async def test_transport_failure_is_terminal(self, sse):
        """Test a reader exception errors the session and keeps partial data."""
        body = sse([{"type": "city_data", "data": {"city": "Oslo"}}])

        async def failing_stream():
            yield body
            raise ConnectionError("connection reset by peer")

        callbacks = RecordingCallbacks()
        session = await StreamAssembler().run(failing_stream(), callbacks.bundle())

        assert callbacks.kinds() == ["progress", "error"]
        assert "connection reset by peer" in callbacks.calls[-1][1]
        assert session.phase == StreamPhase.ERRORED
        assert session.data.general_city_data == {"city": "Oslo"}

    @pytest.mark.asyncio
    async def test_handler_failure_skips_event(self, sse, byte_stream):
        """Test a failing route is logged and the stream carries on."""

        class FailingRouter(DomainRouter):
            def route(self, channel, value, session):
                if channel == ChannelName.HOTELS:
                    raise RuntimeError("bad hotels payload")
                super().route(channel, value, session)

        events = [
            {"type": "hotels", "data": {"hotels": []}},
            {"type": "city_data", "data": {"city": "Oslo"}},
            {"type": "complete"},
        ]
        assembler = StreamAssembler(router=FailingRouter())
        updates = await collect(assembler, byte_stream(sse(events)))

        assert [u.kind for u in updates] == [UpdateKind.PROGRESS, UpdateKind.COMPLETE]
        assert assembler.stats.handler_errors == 1
        assert updates[-1].session.data.general_city_data == {"city": "Oslo"}


class TestControlEvents:
    """Test start, direct and unknown events."""

    @pytest.mark.asyncio
    async def test_start_sets_identity(self, sse, byte_stream):
        events = [{"type": "start", "data": {"session_id": "s1", "domain": "Dining", "city": "Paris"}}]
        updates = await collect(StreamAssembler(), byte_stream(sse(events)))

        session = updates[0].session
        assert session.session_id == "s1"
        assert session.domain == DomainType.DINING
        assert session.data.domain == "dining"
        assert session.city == "Paris"
        assert session.phase == StreamPhase.STREAMING
        assert session.started_at is not None

    @pytest.mark.asyncio
    async def test_start_clears_partial_fragments(self, sse, chunk, byte_stream):
        events = [
            chunk("city_data", '{"city": "A'),
            {"type": "start", "data": {"session_id": "s1"}},
            chunk("city_data", '{"city": "B"}'),
        ]
        updates = await collect(StreamAssembler(), byte_stream(sse(events)))
        assert updates[-1].session.data.general_city_data == {"city": "B"}

    @pytest.mark.asyncio
    async def test_unknown_event_ignored(self, sse, byte_stream):
        assembler = StreamAssembler()
        updates = await collect(assembler, byte_stream(sse([{"type": "heartbeat"}])))

        assert [u.kind for u in updates] == [UpdateKind.COMPLETE]
        assert assembler.stats.unknown_events == 1

    @pytest.mark.asyncio
    async def test_unknown_chunk_part_reports_progress_only(self, sse, chunk, byte_stream):
        updates = await collect(StreamAssembler(), byte_stream(sse([chunk("weather", "{}")])))
        assert updates[0].kind == UpdateKind.PROGRESS
        assert updates[0].progress == 0

    @pytest.mark.asyncio
    async def test_direct_payload_as_json_text(self, sse, byte_stream):
        events = [{"type": "restaurants", "data": json.dumps({"restaurants": [{"name": "R"}]})}]
        updates = await collect(StreamAssembler(), byte_stream(sse(events)))

        assert updates[0].session.domain == DomainType.DINING
        assert updates[0].session.data.restaurants == [{"name": "R"}]
        assert updates[0].step == "Discovering restaurants..."

    @pytest.mark.asyncio
    async def test_direct_event_without_data_skipped(self, sse, byte_stream):
        updates = await collect(StreamAssembler(), byte_stream(sse([{"type": "hotels"}])))
        assert [u.kind for u in updates] == [UpdateKind.COMPLETE]
        assert updates[0].session.domain == DomainType.GENERAL

    @pytest.mark.asyncio
    async def test_nearby_event_merges(self, sse, byte_stream):
        events = [
            {"type": "hotels", "data": {"hotels": [{"name": "Casa Azul"}]}},
            {"type": "nearby", "data": {"hotels": [{"id": REAL_ID, "name": "Casa Azul"}]}},
        ]
        updates = await collect(StreamAssembler(), byte_stream(sse(events)))

        session = updates[1].session
        assert session.domain == DomainType.ACCOMMODATION
        assert session.data.hotels == [{"id": REAL_ID, "name": "Casa Azul"}]
        assert updates[1].progress == 80

    def test_parse_stream_data(self):
        assert parse_stream_data('{"a": 1}') == {"a": 1}
        assert parse_stream_data("not json") == "not json"
        assert parse_stream_data({"a": 1}) == {"a": 1}


class TestLifecycle:
    """Test cleanup and reader ownership."""

    @pytest.mark.asyncio
    async def test_no_callbacks_after_cleanup(self, sse, byte_stream, city_stream_events):
        """Test cleanup from inside a callback stops further delivery."""
        assembler = StreamAssembler()
        calls = []

        def on_progress(session):
            calls.append("progress")
            assembler.cleanup()

        callbacks = StreamCallbacks(
            on_progress=on_progress,
            on_complete=lambda s: calls.append("complete"),
            on_error=lambda m: calls.append("error"),
        )
        await assembler.run(byte_stream(sse(city_stream_events)), callbacks)

        assert calls == ["progress"]
        assert not assembler.is_active
        assert assembler.reconstructor.buffer.is_empty()

    @pytest.mark.asyncio
    async def test_reader_released_when_assembly_ends(self, sse):
        reader = RecordingReader([sse([{"type": "complete"}])])
        await collect(StreamAssembler(), reader)
        assert reader.closed

    @pytest.mark.asyncio
    async def test_new_stream_releases_previous_reader(self, sse):
        """Test starting a second stream closes the first one's reader."""
        assembler = StreamAssembler()
        first = RecordingReader(
            [
                sse([{"type": "start", "data": {"session_id": "first"}}]),
                sse([{"type": "hotels", "data": {"hotels": [{"name": "H"}]}}]),
            ]
        )
        second = RecordingReader([sse([{"type": "start", "data": {"session_id": "second"}}])])

        first_updates = assembler.assemble(first)
        update = await first_updates.__anext__()
        assert update.session.session_id == "first"

        second_updates = await collect(assembler, second)

        assert first.closed
        assert second_updates[-1].kind == UpdateKind.COMPLETE
        assert second_updates[-1].session.session_id == "second"
        assert assembler.session.session_id == "second"

        # The released stream delivers nothing more
        assert [u async for u in first_updates] == []
        assert assembler.session.domain == DomainType.GENERAL

    @pytest.mark.asyncio
    async def test_aclose_releases_reader(self, sse):
        assembler = StreamAssembler()
        reader = RecordingReader(
            [sse([{"type": "start"}]), sse([{"type": "complete"}])]
        )
        updates = assembler.assemble(reader)
        await updates.__anext__()

        await assembler.aclose()

        assert reader.closed
        assert [u async for u in updates] == []

    @pytest.mark.asyncio
    async def test_cleanup_closes_reader_of_abandoned_stream(self, sse):
        """Test cleanup releases the body even if assembly is never resumed."""
        assembler = StreamAssembler()
        reader = RecordingReader(
            [sse([{"type": "start"}]), sse([{"type": "complete"}])]
        )
        updates = assembler.assemble(reader)
        await updates.__anext__()

        assembler.cleanup()
        await asyncio.sleep(0)

        assert reader.closed
        assert not assembler.is_active
        await updates.aclose()

    def test_cleanup_without_loop(self):
        assembler = StreamAssembler()
        assembler.cleanup()
        assert not assembler.is_active
