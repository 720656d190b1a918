"""Reassembly of channel JSON documents from streamed text fragments.

The generator streams each channel's JSON as arbitrary substrings. Every
fragment is appended to that channel's buffer, which is then scanned for
the first balanced top-level object. An object is emitted once it parses;
the buffer keeps only the text after it.

Braces inside JSON string literals are skipped during the scan, so values
such as ``"{city} guide"`` neither open nor close an object.
"""

import json
import re
from typing import Any, Dict, Optional, Tuple

from wanderstream.streaming.events import ChannelName
from wanderstream.utils.logging import get_logger

logger = get_logger(__name__)

_FENCE_JSON = re.compile(r"```json\n?")
_FENCE = re.compile(r"```\n?")


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers wrapping generated JSON."""
    return _FENCE.sub("", _FENCE_JSON.sub("", text))


def find_object_span(text: str) -> Optional[Tuple[int, int]]:
    """Locate the first balanced top-level JSON object in ``text``.

    Args:
        text: Buffer contents with code fences already removed.

    Returns:
        ``(start, end)`` with ``end`` the index of the closing brace, or
        None when no object has closed yet.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return start, i

    return None


class ChunkBuffer:
    """Accumulated, not yet consumed text per channel."""

    def __init__(self):
        self._buffers: Dict[ChannelName, str] = {}
        self.reset()

    def reset(self) -> None:
        """Empty every channel's buffer."""
        self._buffers = {channel: "" for channel in ChannelName}

    def get(self, channel: ChannelName) -> str:
        return self._buffers[channel]

    def set(self, channel: ChannelName, text: str) -> None:
        self._buffers[channel] = text

    def append(self, channel: ChannelName, text: str) -> str:
        self._buffers[channel] += text
        return self._buffers[channel]

    def is_empty(self) -> bool:
        return not any(self._buffers.values())

    def snapshot(self) -> Dict[str, str]:
        """Copy of the buffers keyed by channel name, for diagnostics."""
        return {channel.value: text for channel, text in self._buffers.items()}


class FragmentReconstructor:
    """Turns per-channel fragments into complete JSON values.

    At most one value is emitted per appended fragment. Any further object
    already balanced in the buffer is picked up on the channel's next
    fragment.
    """

    def __init__(self, buffer: Optional[ChunkBuffer] = None):
        """Initialize the reconstructor.

        Args:
            buffer: Buffer to operate on; a fresh one is created if omitted.
        """
        self.buffer = buffer or ChunkBuffer()
        self.values_emitted = 0

    def reset(self) -> None:
        """Discard all partially received documents."""
        self.buffer.reset()

    def pending(self, channel: ChannelName) -> str:
        """Text buffered for ``channel`` that has not formed a value yet."""
        return self.buffer.get(channel)

    def append(self, channel: ChannelName, fragment: str) -> Optional[Any]:
        """Add a fragment and try to complete the channel's next value.

        Args:
            channel: Channel the fragment belongs to.
            fragment: Raw text from a ``chunk`` event.

        Returns:
            The parsed object if one closed, otherwise None.
        """
        raw = self.buffer.append(channel, fragment)
        text = strip_code_fences(raw)

        span = find_object_span(text)
        if span is None:
            return None

        start, end = span
        candidate = text[start : end + 1]
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            logger.debug(
                f"Partial JSON for {channel.value}, waiting for more input "
                f"({len(text)} chars buffered)"
            )
            return None

        self.buffer.set(channel, text[end + 1 :])
        self.values_emitted += 1
        logger.debug(f"Reconstructed {channel.value} value ({len(candidate)} chars)")
        return value
