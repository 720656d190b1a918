"""Server-Sent-Event frame decoding for the chat stream.

Turns the raw response body into decoded ``StreamEvent`` records. Byte
chunks from the transport never line up with lines, so a partial trailing
line is carried over to the next chunk and decoded at end of stream if it
forms a valid frame.
"""

import codecs
import json
from typing import AsyncIterable, AsyncIterator, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from wanderstream.streaming.events import StreamEvent
from wanderstream.utils.exceptions import FrameDecodeError
from wanderstream.utils.logging import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data:"
EVENT_PREFIX = "event:"


class SSEFrameDecoder:
    """Incremental decoder from SSE text to stream events.

    A decoder instance holds the pending partial line, so one instance must
    be used for exactly one response body.
    """

    def __init__(self):
        """Initialize the decoder with an empty line buffer."""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self.frames_decoded = 0
        self.frames_dropped = 0

    def feed_bytes(self, data: bytes) -> List[StreamEvent]:
        """Decode a chunk of raw bytes.

        Args:
            data: Bytes as read from the response body.

        Returns:
            Events completed by this chunk, in order.
        """
        return self.feed(self._utf8.decode(data))

    def feed(self, text: str) -> List[StreamEvent]:
        """Decode a chunk of text.

        Args:
            text: Text continuing the stream.

        Returns:
            Events for every complete line in the buffer, in order.
        """
        self._pending += text
        *lines, self._pending = self._pending.split("\n")

        events = []
        for line in lines:
            event = self._decode_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[StreamEvent]:
        """Decode whatever remains once the byte stream has ended.

        Returns:
            The final event if the unterminated last line is a valid frame.
        """
        remainder = self._pending + self._utf8.decode(b"", final=True)
        self._pending = ""
        events = []
        for line in remainder.split("\n"):
            event = self._decode_line(line)
            if event is not None:
                events.append(event)
        return events

    async def decode(
        self, byte_stream: AsyncIterable[Union[bytes, str]]
    ) -> AsyncIterator[StreamEvent]:
        """Lazily decode a whole response body.

        Args:
            byte_stream: Async iterable of body chunks.

        Yields:
            StreamEvent: Decoded events in arrival order.
        """
        async for chunk in byte_stream:
            if isinstance(chunk, str):
                events = self.feed(chunk)
            else:
                events = self.feed_bytes(chunk)
            for event in events:
                yield event

        for event in self.flush():
            yield event

    def _decode_line(self, line: str) -> Optional[StreamEvent]:
        """Decode one line, logging and dropping malformed frames."""
        line = line.rstrip("\r")

        if line.startswith(EVENT_PREFIX):
            logger.debug(f"SSE event line: {line[len(EVENT_PREFIX):].strip()}")
            return None

        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):]
        if payload.startswith(" "):
            payload = payload[1:]
        if payload.strip() == "":
            # Keep-alive
            return None

        try:
            event = parse_event(payload)
        except FrameDecodeError as e:
            self.frames_dropped += 1
            logger.error(f"Failed to parse SSE data: {e.message} - {payload[:200]!r}")
            return None

        self.frames_decoded += 1
        return event


def parse_event(payload: str) -> StreamEvent:
    """Parse the JSON payload of a ``data:`` line.

    Args:
        payload: Text after the ``data:`` prefix.

    Returns:
        The decoded event.

    Raises:
        FrameDecodeError: If the payload is not a JSON object with a ``type``.
    """
    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as e:
        raise FrameDecodeError(f"Invalid JSON in frame: {e.msg}", raw=payload)

    if not isinstance(raw, dict):
        raise FrameDecodeError(
            f"Frame payload is a {type(raw).__name__}, expected an object",
            raw=payload,
        )

    try:
        return StreamEvent.model_validate(raw)
    except PydanticValidationError as e:
        raise FrameDecodeError(
            "Frame payload is not a stream event",
            raw=payload,
            details={"errors": len(e.errors())},
        )
