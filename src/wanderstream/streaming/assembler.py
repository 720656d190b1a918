"""Assembly of a streamed chat response into session state.

This module provides the StreamAssembler class which consumes one response
body, dispatches control events, reconstructs fragmented channel values,
routes them into the session and reports progress, completion and errors.

Callers either iterate ``assemble()``, which yields an ``AssemblyUpdate``
per reportable step, or hand a ``StreamCallbacks`` bundle to ``run()``.
"""

import asyncio
import inspect
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, List, Optional, Union

from wanderstream.streaming.errors import ParsedError, parse_stream_error
from wanderstream.streaming.events import (
    DIRECT_CHANNEL_EVENTS,
    EventType,
    StreamEvent,
)
from wanderstream.streaming.fragments import FragmentReconstructor
from wanderstream.streaming.frame_decoder import SSEFrameDecoder
from wanderstream.streaming.progress import ProgressTracker
from wanderstream.streaming.router import NEARBY, DomainRouter
from wanderstream.streaming.session import (
    DomainType,
    Session,
    StreamPhase,
    create_streaming_session,
)
from wanderstream.utils.logging import get_logger, log_stream_transition

logger = get_logger(__name__)


class UpdateKind(Enum):
    """Kinds of updates reported to the consumer."""

    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class AssemblyUpdate:
    """One report from the assembler.

    ``session`` is a deep snapshot taken when the update was produced, so
    consumers can re-render from it without tracking diffs.
    """

    kind: UpdateKind
    session: Session
    progress: int
    step: str
    event_type: Optional[str] = None
    error: Optional[str] = None
    parsed_error: Optional[ParsedError] = None


@dataclass
class StreamCallbacks:
    """Callback bundle for ``StreamAssembler.run``.

    Callbacks may be plain functions or coroutine functions.
    """

    on_progress: Callable[[Session], Any]
    on_complete: Callable[[Session], Any]
    on_error: Callable[[str], Any]
    on_redirect: Optional[Callable[[DomainType, Dict[str, Any]], Any]] = None


@dataclass
class AssemblyStatistics:
    """Counters describing how a stream was assembled."""

    events_received: int = 0
    chunks_received: int = 0
    values_routed: int = 0
    handler_errors: int = 0
    unknown_events: int = 0
    frames_dropped: int = 0
    started_at: datetime = field(default_factory=datetime.now)

    def get_report(self) -> Dict[str, Any]:
        """Get the counters plus runtime as a dictionary."""
        runtime = datetime.now() - self.started_at
        return {
            "runtime_seconds": runtime.total_seconds(),
            "events_received": self.events_received,
            "chunks_received": self.chunks_received,
            "values_routed": self.values_routed,
            "handler_errors": self.handler_errors,
            "unknown_events": self.unknown_events,
            "frames_dropped": self.frames_dropped,
            "health_status": "healthy"
            if self.handler_errors == 0 and self.frames_dropped == 0
            else "degraded",
        }


def parse_stream_data(data: Any) -> Any:
    """Accept direct payloads sent either as objects or as JSON text."""
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return data
    return data


class StreamAssembler:
    """Session state machine for one streamed response at a time.

    States run idle -> streaming -> completed | errored. Each call to
    ``assemble()`` starts a brand-new session; a stream still active on the
    instance is released first so two streams never share the chunk
    buffers. After ``cleanup()`` no further updates or callbacks are
    delivered.
    """

    def __init__(
        self,
        domain: DomainType = DomainType.GENERAL,
        router: Optional[DomainRouter] = None,
    ):
        """Initialize the assembler.

        Args:
            domain: Domain new sessions start in until a ``start`` event
                says otherwise.
            router: Domain router to use; a default one is created if omitted.
        """
        self.initial_domain = domain
        self.router = router or DomainRouter()
        self.reconstructor = FragmentReconstructor()
        self.tracker = ProgressTracker()
        self.session: Session = create_streaming_session(domain)
        self.stats = AssemblyStatistics()

        self._reader: Optional[AsyncIterable[Any]] = None
        self._generation = 0
        self._alive = False
        self._close_task: Optional[asyncio.Task] = None

        logger.debug("StreamAssembler initialized")

    @property
    def is_active(self) -> bool:
        """True while a stream is being consumed and not cleaned up."""
        return self._alive and self.session.phase in (
            StreamPhase.IDLE,
            StreamPhase.STREAMING,
        )

    async def assemble(
        self, byte_stream: AsyncIterable[Union[bytes, str]]
    ) -> AsyncIterator[AssemblyUpdate]:
        """Consume a response body and yield assembly updates.

        Args:
            byte_stream: Async iterable of response body chunks.

        Yields:
            AssemblyUpdate: Progress updates, then exactly one completion or
            error update unless the stream was cleaned up first.
        """
        await self._release_reader()

        self._generation += 1
        generation = self._generation
        self._alive = True
        self._reader = byte_stream
        self.session = create_streaming_session(self.initial_domain)
        self.reconstructor.reset()
        self.tracker.reset()
        self.stats = AssemblyStatistics()

        decoder = SSEFrameDecoder()
        events = decoder.decode(self._mark_streaming(byte_stream, generation))
        logger.info(f"Starting stream assembly #{generation}")

        try:
            async for event in events:
                if not self._is_current(generation):
                    logger.debug(f"Stream #{generation} released, stopping")
                    return

                for update in self._handle_event(event):
                    if not self._is_current(generation):
                        return
                    yield update

                if self.session.phase in (StreamPhase.COMPLETED, StreamPhase.ERRORED):
                    break

            if self._is_current(generation):
                # Byte stream ended; completes unless already terminal
                for update in self._complete():
                    yield update

        except Exception as e:
            if not self._is_current(generation):
                return
            logger.error(f"Stream processing error: {e}", exc_info=True)
            for update in self._fail(f"Stream error: {e}"):
                yield update

        finally:
            self.stats.frames_dropped = decoder.frames_dropped
            await events.aclose()
            if self._generation == generation:
                await self._release_reader()
            logger.debug(f"Stream #{generation} assembly finished: {self.stats.get_report()}")

    async def run(
        self,
        byte_stream: AsyncIterable[Union[bytes, str]],
        callbacks: StreamCallbacks,
    ) -> Session:
        """Consume a response body, reporting through callbacks.

        Args:
            byte_stream: Async iterable of response body chunks.
            callbacks: Progress, completion, error and optional redirect
                callbacks.

        Returns:
            The session as it stood when the stream finished.
        """
        updates = self.assemble(byte_stream)
        try:
            async for update in updates:
                if not self._alive:
                    break
                if update.kind == UpdateKind.PROGRESS:
                    await self._invoke(callbacks.on_progress, update.session)
                elif update.kind == UpdateKind.COMPLETE:
                    await self._invoke(callbacks.on_complete, update.session)
                    if callbacks.on_redirect is not None and self._alive:
                        await self._invoke(
                            callbacks.on_redirect,
                            update.session.domain,
                            update.session.data_dict(),
                        )
                elif update.kind == UpdateKind.ERROR:
                    await self._invoke(callbacks.on_error, update.error)
        finally:
            await updates.aclose()
        return self.session

    def cleanup(self) -> None:
        """Stop delivering updates, drop buffered fragments and close the reader.

        Inside a running event loop the reader is closed by a scheduled task,
        so an abandoned ``assemble()`` does not keep the body open. Without
        a loop the reader is left for ``aclose()`` or the generator itself.
        """
        self._alive = False
        self.reconstructor.reset()
        if self._reader is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._close_task = loop.create_task(self._release_reader())
        logger.debug("StreamAssembler cleaned up")

    async def aclose(self) -> None:
        """Clean up and release the active reader."""
        self.cleanup()
        await self._release_reader()

    def _is_current(self, generation: int) -> bool:
        return self._alive and generation == self._generation

    async def _mark_streaming(
        self, byte_stream: AsyncIterable[Union[bytes, str]], generation: int
    ) -> AsyncIterator[Union[bytes, str]]:
        """Pass the body through, entering streaming on the first byte."""
        async for chunk in byte_stream:
            if self.session.phase == StreamPhase.IDLE and self._is_current(generation):
                self._enter_streaming("first bytes received")
            yield chunk

    async def _release_reader(self) -> None:
        reader, self._reader = self._reader, None
        if reader is None:
            return
        close = getattr(reader, "aclose", None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            logger.warning(f"Error releasing stream reader: {e}")
            # Still busy in a read; the owning generator retries on exit
            if self._reader is None:
                self._reader = reader

    async def _invoke(self, callback: Callable[..., Any], *args: Any) -> None:
        if not self._alive:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                f"Stream callback {getattr(callback, '__name__', callback)!r} failed: {e}",
                exc_info=True,
            )

    def _enter_streaming(self, reason: str) -> None:
        self.session.phase = StreamPhase.STREAMING
        self.session.started_at = datetime.now()
        log_stream_transition(StreamPhase.IDLE.value, StreamPhase.STREAMING.value, reason)

    def _handle_event(self, event: StreamEvent) -> List[AssemblyUpdate]:
        """Apply one decoded event and return the updates it produces.

        Failures while applying a single event are logged and the event
        skipped. Only ``error`` events end the stream from here.
        """
        self.stats.events_received += 1
        event_type = event.event_type

        if event_type is None:
            self.stats.unknown_events += 1
            logger.info(f"Unknown event type: {event.type}")
            return []

        if event_type == EventType.ERROR:
            return self._fail(event.error or "Unknown streaming error")

        if event_type == EventType.COMPLETE:
            return self._complete()

        try:
            if event_type == EventType.START:
                milestone = self._handle_start(event)
            elif event_type == EventType.CHUNK:
                milestone = self._handle_chunk(event)
            else:
                milestone = self._handle_direct(event, event_type)
        except Exception as e:
            self.stats.handler_errors += 1
            logger.error(f"Error processing {event.type} event: {e}", exc_info=True)
            return []

        if milestone is False:
            return []
        return [self._progress_update(milestone, event.type)]

    def _handle_start(self, event: StreamEvent) -> str:
        if self.session.phase == StreamPhase.IDLE:
            self._enter_streaming("start event")

        payload = event.start_payload()
        if payload.session_id:
            self.session.session_id = payload.session_id
        if payload.domain:
            domain = DomainType.from_value(payload.domain)
            if domain is None:
                logger.warning(f"Unknown domain in start event: {payload.domain!r}")
            else:
                self.session.set_domain(domain)
        if payload.city:
            self.session.city = payload.city

        self.reconstructor.reset()
        logger.info(
            f"Stream started: session={self.session.session_id or '-'} "
            f"domain={self.session.domain.value} city={self.session.city or '-'}"
        )
        return "start"

    def _handle_chunk(self, event: StreamEvent) -> Union[str, bool, None]:
        payload = event.chunk_payload()
        if payload is None:
            logger.warning("Chunk event without data, skipping")
            return False

        self.stats.chunks_received += 1
        channel = payload.channel
        if channel is None:
            logger.debug(f"Chunk for unknown part {payload.part!r} ignored")
            return None

        value = self.reconstructor.append(channel, payload.chunk)
        if value is None:
            return None

        self.router.route(channel, value, self.session)
        self.stats.values_routed += 1
        return channel.value

    def _handle_direct(self, event: StreamEvent, event_type: EventType) -> Union[str, bool]:
        if event.data is None:
            logger.warning(f"{event.type} event without data, skipping")
            return False

        value = parse_stream_data(event.data)
        if event_type == EventType.NEARBY:
            self.router.route(NEARBY, value, self.session)
        else:
            self.router.route(DIRECT_CHANNEL_EVENTS[event_type], value, self.session)
        self.stats.values_routed += 1
        return event_type.value

    def _progress_update(self, milestone: Optional[str], event_type: str) -> AssemblyUpdate:
        if milestone:
            step = self.tracker.advance(milestone)
            progress, message = step.progress, step.message
        else:
            progress, message = self.tracker.progress, self.tracker.message
        return AssemblyUpdate(
            kind=UpdateKind.PROGRESS,
            session=self.session.snapshot(),
            progress=progress,
            step=message,
            event_type=event_type,
        )

    def _complete(self) -> List[AssemblyUpdate]:
        if self.session.phase in (StreamPhase.COMPLETED, StreamPhase.ERRORED):
            return []

        previous = self.session.phase
        self.session.is_complete = True
        self.session.phase = StreamPhase.COMPLETED
        self.session.completed_at = datetime.now()
        step = self.tracker.advance("complete")
        log_stream_transition(
            previous.value,
            StreamPhase.COMPLETED.value,
            f"domain={self.session.domain.value}",
        )
        return [
            AssemblyUpdate(
                kind=UpdateKind.COMPLETE,
                session=self.session.snapshot(),
                progress=step.progress,
                step=step.message,
                event_type=EventType.COMPLETE.value,
            )
        ]

    def _fail(self, message: str) -> List[AssemblyUpdate]:
        if self.session.phase in (StreamPhase.COMPLETED, StreamPhase.ERRORED):
            return []

        previous = self.session.phase
        self.session.error = message
        self.session.phase = StreamPhase.ERRORED
        parsed = parse_stream_error(message)
        log_stream_transition(
            previous.value, StreamPhase.ERRORED.value, parsed.category.value
        )
        return [
            AssemblyUpdate(
                kind=UpdateKind.ERROR,
                session=self.session.snapshot(),
                progress=self.tracker.progress,
                step=parsed.user_message,
                event_type=EventType.ERROR.value,
                error=message,
                parsed_error=parsed,
            )
        ]
