"""HTTP client for the unified streaming chat endpoints.

This module opens the SSE response for a chat message and hands its body to
a StreamAssembler. Rate limiting and HTTP status handling happen before the
body is read; failures while reading the body surface as stream errors.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from wanderstream.client.rate_limiter import ClientRateLimiter
from wanderstream.config.models import APIConfig
from wanderstream.streaming.assembler import StreamAssembler, StreamCallbacks
from wanderstream.streaming.session import Session
from wanderstream.utils.exceptions import RateLimitError, TransportError
from wanderstream.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RETRY_AFTER = 60


def chat_endpoint(profile_id: Optional[str]) -> str:
    """Endpoint path for a chat stream.

    Args:
        profile_id: Search profile to chat under; None selects the free
            endpoint.
    """
    if profile_id:
        return f"/llm/prompt-response/chat/sessions/stream/{profile_id}"
    return "/llm/chat/stream/free"


def parse_retry_after(value: Optional[str]) -> int:
    """Read a ``Retry-After`` header given in seconds."""
    if not value:
        return DEFAULT_RETRY_AFTER
    try:
        return int(value)
    except ValueError:
        logger.debug(f"Unparseable Retry-After header: {value!r}")
        return DEFAULT_RETRY_AFTER


class ChatStreamClient:
    """Streams chat responses from the recommendation API.

    Use as an async context manager so the underlying ``httpx.AsyncClient``
    is closed:

        async with ChatStreamClient(config.api, token=token) as client:
            session = await client.chat("Plan a day in Lisbon", profile_id=pid)
    """

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        token: Optional[str] = None,
        rate_limiter: Optional[ClientRateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: API settings; defaults are used if omitted.
            token: Bearer token sent with authenticated requests.
            rate_limiter: Limiter consulted before each stream is opened.
            transport: Custom httpx transport, mainly for tests.
        """
        self.config = config or APIConfig()
        self.token = token
        self.rate_limiter = rate_limiter
        self._http = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(
                self.config.request_timeout, connect=self.config.connect_timeout
            ),
            transport=transport,
        )

    async def __aenter__(self) -> "ChatStreamClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self, authenticated: bool) -> Dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if authenticated and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @asynccontextmanager
    async def open_stream(
        self,
        message: str,
        profile_id: Optional[str] = None,
        user_location: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a chat stream and yield the successful response.

        Args:
            message: User message.
            profile_id: Search profile id; None uses the free endpoint.
            user_location: Optional ``{"latitude": ..., "longitude": ...}``.

        Yields:
            The streaming response with a 2xx status.

        Raises:
            RateLimitError: If the client or server rate limit refuses the
                request.
            TransportError: If the request fails or returns another non-2xx
                status.
        """
        endpoint = chat_endpoint(profile_id)

        if self.rate_limiter is not None:
            decision = self.rate_limiter.check(endpoint)
            if not decision.allowed:
                retry_after = decision.retry_after or DEFAULT_RETRY_AFTER
                raise RateLimitError(
                    f"Rate limit exceeded for {endpoint}. Retry after {retry_after} seconds.",
                    retry_after=retry_after,
                    endpoint=endpoint,
                )

        body: Dict[str, Any] = {"message": message}
        if user_location is not None:
            body["user_location"] = user_location

        request = self._http.build_request(
            "POST",
            endpoint,
            json=body,
            headers=self._headers(authenticated=profile_id is not None),
        )
        logger.info(f"Opening chat stream: POST {endpoint}")

        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request to {endpoint} failed: {e}", endpoint=endpoint
            ) from e

        try:
            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                raise RateLimitError(
                    f"Server rate limit exceeded for {endpoint}. "
                    f"Retry after {retry_after} seconds.",
                    retry_after=retry_after,
                    endpoint=endpoint,
                )
            if not response.is_success:
                await response.aread()
                raise TransportError(
                    f"HTTP error! status: {response.status_code}",
                    status_code=response.status_code,
                    endpoint=endpoint,
                    details={"body": response.text[:200]},
                )
            yield response
        finally:
            await response.aclose()

    async def iter_body(self, response: httpx.Response) -> AsyncIterator[bytes]:
        """Yield raw body bytes, mapping httpx failures to TransportError."""
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise TransportError(
                f"Connection lost while reading stream: {e}",
                status_code=response.status_code,
                endpoint=response.request.url.path,
            ) from e

    async def stream_chat(
        self,
        message: str,
        profile_id: Optional[str] = None,
        user_location: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[bytes]:
        """Yield the raw body bytes of a chat stream."""
        async with self.open_stream(message, profile_id, user_location) as response:
            async for chunk in self.iter_body(response):
                yield chunk

    async def chat(
        self,
        message: str,
        profile_id: Optional[str] = None,
        user_location: Optional[Dict[str, Any]] = None,
        callbacks: Optional[StreamCallbacks] = None,
        assembler: Optional[StreamAssembler] = None,
    ) -> Session:
        """Send a message and assemble the streamed response.

        Args:
            message: User message.
            profile_id: Search profile id; None uses the free endpoint.
            user_location: Optional user coordinates.
            callbacks: Callbacks to report through; without them updates are
                consumed silently.
            assembler: Assembler to drive; a new one is created if omitted.

        Returns:
            The final session. A failed stream returns an errored session
            rather than raising.

        Raises:
            RateLimitError: If the request is refused before streaming.
            TransportError: If the stream cannot be opened.
        """
        assembler = assembler or StreamAssembler()
        async with self.open_stream(message, profile_id, user_location) as response:
            body = self.iter_body(response)
            if callbacks is not None:
                return await assembler.run(body, callbacks)

            async for _ in assembler.assemble(body):
                pass
            return assembler.session
