"""Pytest configuration and shared fixtures for Wanderstream tests.

This module provides common test fixtures and configuration
that can be used across all test modules.
"""

import json
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, Generator, Iterable, List, Optional

import pytest
from _pytest.config import Config

ENV_VARS = [
    "WANDERSTREAM_API_TOKEN",
    "WANDERSTREAM_API_BASE_URL",
    "WANDERSTREAM_REQUEST_TIMEOUT",
    "WANDERSTREAM_LOG_LEVEL",
    "WANDERSTREAM_LOG_DIR",
    "WANDERSTREAM_STORAGE_DIR",
]


def sse_frame(event: Dict[str, Any]) -> str:
    """Encode one event as an SSE data frame."""
    return f"data: {json.dumps(event)}\n\n"


def sse_body(events: Iterable[Dict[str, Any]]) -> bytes:
    """Encode a sequence of events as an SSE response body."""
    return "".join(sse_frame(event) for event in events).encode("utf-8")


def chunk_event(part: str, chunk: str) -> Dict[str, Any]:
    return {"type": "chunk", "data": {"part": part, "chunk": chunk}}


async def iter_chunks(data: bytes, size: Optional[int] = None) -> AsyncIterator[bytes]:
    """Yield ``data`` whole or in pieces of ``size`` bytes."""
    if size is None:
        yield data
        return
    for start in range(0, len(data), size):
        yield data[start : start + size]


@pytest.fixture
def sse() -> Callable[[Iterable[Dict[str, Any]]], bytes]:
    """Build an SSE body from event dictionaries."""
    return sse_body


@pytest.fixture
def chunk() -> Callable[[str, str], Dict[str, Any]]:
    """Build a ``chunk`` event for a part."""
    return chunk_event


@pytest.fixture
def byte_stream() -> Callable[..., AsyncIterator[bytes]]:
    """Turn bytes into an async byte stream, optionally split."""
    return iter_chunks


@pytest.fixture
def city_stream_events() -> List[Dict[str, Any]]:
    """A full general-domain conversation delivered as fragments."""
    city = json.dumps(
        {"city": "Lisbon", "country": "Portugal", "description": "City of {seven} hills"}
    )
    pois = json.dumps(
        {
            "points_of_interest": [
                {"id": "00000000-0000-0000-0000-000000000000", "name": "Belém Tower"},
                {"id": "00000000-0000-0000-0000-000000000000", "name": "Alfama"},
            ]
        }
    )
    itinerary = json.dumps(
        {
            "itinerary_name": "A day in Lisbon",
            "overall_description": "Walk the old town",
            "points_of_interest": [{"name": "Alfama"}],
        }
    )
    return [
        {"type": "start", "data": {"session_id": "sess-1", "domain": "general", "city": "Lisbon"}},
        chunk_event("city_data", city[:20]),
        chunk_event("general_pois", pois[:30]),
        chunk_event("city_data", city[20:]),
        chunk_event("general_pois", pois[30:]),
        chunk_event("itinerary", "```json\n" + itinerary[:25]),
        chunk_event("itinerary", itinerary[25:] + "\n```"),
        {"type": "complete"},
    ]


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary config file for testing."""
    config_file = tmp_path / "test_config.yml"
    config_content = """
api:
  base_url: https://api.example.com/api/v1/
  request_timeout: 30

rate_limit:
  max_requests: 5
  window_seconds: 10

storage:
  directory: sessions
"""
    config_file.write_text(config_content)
    yield config_file


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove Wanderstream variables inherited from the shell."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def isolate_tests(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate tests by changing to a temporary directory."""
    monkeypatch.chdir(tmp_path)


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
