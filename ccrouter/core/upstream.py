"""HTTP client for OpenAI-compatible upstream providers."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from typing import Any, AsyncIterator, Optional

import httpx

from .exceptions import UpstreamError
from .router import Provider
from .sse import DONE_MARKER, SSEDecoder, SSEEvent, detect_sse_payload_error

logger = logging.getLogger("ccrouter")

# Returned by decode_chunk_event for the [DONE] marker
DONE = object()


def build_upstream_headers(provider: Provider) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        # Explicitly request uncompressed responses
        "Accept-Encoding": "identity",
    }
    if provider.api_key:
        headers["Authorization"] = f"Bearer {provider.api_key}"
    return headers


def format_httpx_error(exc: httpx.HTTPError, provider: Provider) -> str:
    """Produce a user-facing description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)
    parts.append(f"url={provider.chat_completions_url}")
    if isinstance(exc, httpx.TimeoutException):
        parts.append(f"timeout={provider.timeout}s")
    return "; ".join(parts)


class UpstreamClient:
    """Sends Chat Completions requests.

    ``transport`` is handed to ``httpx.AsyncClient``; tests pass an
    ``httpx.MockTransport`` here.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.transport = transport

    def _client(self, provider: Provider) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=provider.timeout)

    async def complete(self, provider: Provider, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a non-streaming request and return the decoded completion."""
        try:
            async with self._client(provider) as client:
                response = await client.post(
                    provider.chat_completions_url,
                    json=payload,
                    headers=build_upstream_headers(provider),
                )
        except httpx.HTTPError as exc:
            raise UpstreamError(format_httpx_error(exc, provider), status_code=502) from exc

        if response.status_code >= 400:
            raise UpstreamError(
                f"Upstream {provider.name} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise UpstreamError(
                f"Upstream {provider.name} returned invalid JSON", status_code=502
            ) from exc

    async def open_stream(
        self, provider: Provider, payload: dict[str, Any]
    ) -> ChunkStream:
        """Start a streaming request and return its ``ChunkStream``.

        The HTTP status is checked before returning, so a rejected request
        raises here rather than in the middle of the client stream.
        """
        stack = AsyncExitStack()
        try:
            client = await stack.enter_async_context(self._client(provider))
            response = await stack.enter_async_context(
                client.stream(
                    "POST",
                    provider.chat_completions_url,
                    json=payload,
                    headers=build_upstream_headers(provider),
                )
            )
            if response.status_code >= 400:
                detail = (await response.aread()).decode("utf-8", errors="replace")
                raise UpstreamError(
                    f"Upstream {provider.name} returned {response.status_code}: {detail}",
                    status_code=response.status_code,
                )
        except httpx.HTTPError as exc:
            await stack.aclose()
            raise UpstreamError(format_httpx_error(exc, provider), status_code=502) from exc
        except BaseException:
            await stack.aclose()
            raise
        return ChunkStream(response, stack)


def decode_chunk_event(event: SSEEvent) -> Any:
    """Chunk payload of one upstream event, ``DONE`` for the end marker, or None to skip."""
    if event.data is None:
        return None
    data = event.data.strip()
    if data == DONE_MARKER:
        return DONE
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping unparseable upstream SSE data: %s", data[:100])
        return None
    error = detect_sse_payload_error(payload)
    if error:
        raise UpstreamError(error)
    return payload


class ChunkStream:
    """Async iterable over the chunk payloads of one upstream response.

    The connection is released when iteration ends or when ``aclose`` is
    called, even if the stream was never read.
    """

    def __init__(self, response: httpx.Response, stack: AsyncExitStack) -> None:
        self.response = response
        self._stack = stack
        self.closed = False

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iter_chunks()

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._stack.aclose()

    async def _iter_chunks(self) -> AsyncIterator[dict[str, Any]]:
        decoder = SSEDecoder()
        try:
            async for raw in self.response.aiter_bytes():
                for event in decoder.feed(raw):
                    payload = decode_chunk_event(event)
                    if payload is DONE:
                        return
                    if payload is not None:
                        yield payload
            for event in decoder.flush():
                payload = decode_chunk_event(event)
                if payload is DONE:
                    return
                if payload is not None:
                    yield payload
        finally:
            await self.aclose()
