"""Tests for the upstream Chat Completions client."""

import json

import httpx
import pytest

from ccrouter.core.exceptions import UpstreamError
from ccrouter.core.router import Provider
from ccrouter.core.upstream import UpstreamClient, build_upstream_headers

PROVIDER = Provider(name="acme", api_base_url="http://acme.test/v1", api_key="secret", timeout=5)


def _sse_body(*payloads) -> bytes:
    frames = [f"data: {json.dumps(p)}\n\n" for p in payloads]
    frames.append("data: [DONE]\n\n")
    return "".join(frames).encode()


class TestBuildUpstreamHeaders:
    """Tests for build_upstream_headers."""

    def test_bearer_token(self):
        """Test the API key is sent as a bearer token."""
        headers = build_upstream_headers(PROVIDER)
        assert headers["Authorization"] == "Bearer secret"
        assert headers["Content-Type"] == "application/json"

    def test_no_key(self):
        """Test no Authorization header without a key."""
        assert "Authorization" not in build_upstream_headers(Provider("x", "http://x"))


class TestComplete:
    """Tests for UpstreamClient.complete."""

    @pytest.mark.asyncio
    async def test_returns_json(self):
        """Test the request is posted and the JSON answer returned."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"choices": []})

        client = UpstreamClient(httpx.MockTransport(handler))
        result = await client.complete(PROVIDER, {"model": "m", "messages": []})

        assert result == {"choices": []}
        assert seen["url"] == "http://acme.test/v1/chat/completions"
        assert seen["body"]["model"] == "m"
        assert seen["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_error_status(self):
        """Test non-2xx answers raise with the upstream status."""
        client = UpstreamClient(httpx.MockTransport(lambda r: httpx.Response(429, text="slow down")))
        with pytest.raises(UpstreamError) as excinfo:
            await client.complete(PROVIDER, {})
        assert excinfo.value.status_code == 429
        assert "slow down" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test transport failures become 502 upstream errors."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = UpstreamClient(httpx.MockTransport(handler))
        with pytest.raises(UpstreamError) as excinfo:
            await client.complete(PROVIDER, {})
        assert excinfo.value.status_code == 502
        assert "ConnectError" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Test a non-JSON body is an upstream error."""
        client = UpstreamClient(httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")))
        with pytest.raises(UpstreamError, match="invalid JSON"):
            await client.complete(PROVIDER, {})


class TestOpenStream:
    """Tests for UpstreamClient.open_stream."""

    @pytest.mark.asyncio
    async def test_yields_chunks_until_done(self):
        """Test chunks are decoded and [DONE] ends the stream."""
        body = _sse_body({"choices": [{"delta": {"content": "a"}}]}, {"choices": [{"delta": {"content": "b"}}]})
        body += b'data: {"ignored": true}\n\n'
        client = UpstreamClient(httpx.MockTransport(lambda r: httpx.Response(200, content=body)))

        chunks = [chunk async for chunk in await client.open_stream(PROVIDER, {"stream": True})]

        assert [c["choices"][0]["delta"]["content"] for c in chunks] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_skips_unparseable_data(self):
        """Test garbage data lines are skipped."""
        body = b"data: not-json\n\n" + _sse_body({"n": 1})
        client = UpstreamClient(httpx.MockTransport(lambda r: httpx.Response(200, content=body)))
        chunks = [chunk async for chunk in await client.open_stream(PROVIDER, {})]
        assert chunks == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_rejected_stream_raises_before_iterating(self):
        """Test a non-2xx status raises from open_stream itself."""
        client = UpstreamClient(httpx.MockTransport(lambda r: httpx.Response(401, text="bad key")))
        with pytest.raises(UpstreamError) as excinfo:
            await client.open_stream(PROVIDER, {})
        assert excinfo.value.status_code == 401

    @pytest.mark.asyncio
    async def test_in_stream_error_payload(self):
        """Test an error event in the stream raises while iterating."""
        body = _sse_body({"n": 1}, {"type": "error", "error": {"message": "overloaded"}})
        client = UpstreamClient(httpx.MockTransport(lambda r: httpx.Response(200, content=body)))
        stream = await client.open_stream(PROVIDER, {})

        received = []
        with pytest.raises(UpstreamError, match="overloaded"):
            async for chunk in stream:
                received.append(chunk)
        assert received == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_aclose_releases_unread_stream(self):
        """Test closing a stream that was never iterated closes the response."""
        body = _sse_body({"n": 1})
        client = UpstreamClient(httpx.MockTransport(lambda r: httpx.Response(200, content=body)))
        stream = await client.open_stream(PROVIDER, {})

        await stream.aclose()

        assert stream.closed
        assert stream.response.is_closed
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_exhausted_stream_is_closed(self):
        """Test reading to [DONE] releases the connection."""
        client = UpstreamClient(httpx.MockTransport(lambda r: httpx.Response(200, content=_sse_body({"n": 1}))))
        stream = await client.open_stream(PROVIDER, {})
        assert [chunk async for chunk in stream] == [{"n": 1}]
        assert stream.closed
