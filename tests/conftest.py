"""Pytest configuration and shared builders."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Iterable, Optional

import pytest

# Make the project importable without installing it
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ccrouter.core.context import RequestContext, ResponseContext
from ccrouter.plugins.hooks import HookPipeline, PluginRegistry


# =============================================================================
# Chunk builders
# =============================================================================


def text_chunk(content: str, finish_reason: Optional[str] = None) -> dict[str, Any]:
    return {
        "choices": [
            {"index": 0, "delta": {"content": content}, "finish_reason": finish_reason}
        ]
    }


def tool_chunk(
    index: int,
    *,
    id: Optional[str] = None,
    name: Optional[str] = None,
    arguments: Optional[str] = None,
) -> dict[str, Any]:
    function: dict[str, Any] = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    call: dict[str, Any] = {"index": index, "function": function}
    if id is not None:
        call["id"] = id
        call["type"] = "function"
    return {"choices": [{"index": 0, "delta": {"tool_calls": [call]}}]}


def finish_chunk(reason: str, usage: Optional[dict[str, int]] = None) -> dict[str, Any]:
    chunk: dict[str, Any] = {"choices": [{"index": 0, "delta": {}, "finish_reason": reason}]}
    if usage:
        chunk["usage"] = usage
    return chunk


def chat_completion(
    content: Optional[str] = None,
    *,
    tool_calls: Optional[list[dict[str, Any]]] = None,
    finish_reason: str = "stop",
) -> dict[str, Any]:
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "model": "upstream-model",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 3},
    }


async def aiter_items(items: Iterable[Any]):
    for item in items:
        yield item


async def failing_aiter(items: Iterable[Any], exc: Exception):
    for item in items:
        yield item
    raise exc


# =============================================================================
# SSE parsing
# =============================================================================


def parse_sse(raw: bytes | str) -> list[dict[str, Any]]:
    """Parse Messages SSE frames into ``{"event": ..., "data": ...}`` dicts."""
    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    events = []
    for frame in text.split("\n\n"):
        lines = [line for line in frame.split("\n") if line]
        event_line = next((line for line in lines if line.startswith("event: ")), None)
        data_line = next((line for line in lines if line.startswith("data: ")), None)
        if event_line and data_line:
            events.append({
                "event": event_line[len("event: "):],
                "data": json.loads(data_line[len("data: "):]),
            })
    return events


async def collect(stream) -> list[dict[str, Any]]:
    frames = [frame async for frame in stream]
    return parse_sse(b"".join(frames))


# =============================================================================
# Fixtures
# =============================================================================


def build_registry(*entries: tuple[str, Any]) -> PluginRegistry:
    registry = PluginRegistry()
    for name, plugin in entries:
        registry.register(name, plugin)
    return registry.freeze()


@pytest.fixture
def request_ctx() -> RequestContext:
    return RequestContext(
        body={"model": "gpt-test", "stream": True, "messages": []},
        stream=True,
        provider="acme",
        model="gpt-test",
        request_id="test",
    )


@pytest.fixture
def response_ctx() -> ResponseContext:
    return ResponseContext()


@pytest.fixture
def empty_hooks() -> HookPipeline:
    return HookPipeline(build_registry())
