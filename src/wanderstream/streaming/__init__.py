"""Streaming response assembly for Wanderstream.

This module turns a chunked, multiplexed SSE response body into an evolving
session: frame decoding, fragment reconstruction, domain routing, collection
merging and the session state machine that drives them.
"""

from .assembler import (
    AssemblyStatistics,
    AssemblyUpdate,
    StreamAssembler,
    StreamCallbacks,
    UpdateKind,
)
from .errors import ErrorCategory, ParsedError, parse_stream_error
from .events import ChannelName, EventType, StreamEvent
from .fragments import ChunkBuffer, FragmentReconstructor, find_object_span, strip_code_fences
from .frame_decoder import SSEFrameDecoder, parse_event
from .merge import merge_unique_by_id
from .navigation import get_domain_route
from .progress import ProgressTracker
from .router import DomainRouter
from .session import DomainType, Session, StreamPhase, create_streaming_session

__all__ = [
    "AssemblyStatistics",
    "AssemblyUpdate",
    "StreamAssembler",
    "StreamCallbacks",
    "UpdateKind",
    "ErrorCategory",
    "ParsedError",
    "parse_stream_error",
    "ChannelName",
    "EventType",
    "StreamEvent",
    "ChunkBuffer",
    "FragmentReconstructor",
    "find_object_span",
    "strip_code_fences",
    "SSEFrameDecoder",
    "parse_event",
    "merge_unique_by_id",
    "get_domain_route",
    "ProgressTracker",
    "DomainRouter",
    "DomainType",
    "Session",
    "StreamPhase",
    "create_streaming_session",
]
