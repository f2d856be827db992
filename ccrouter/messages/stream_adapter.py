"""Adapter converting OpenAI Chat Completions output to Anthropic Messages.

Streaming input is a sequence of chat completion chunks::

    {"choices":[{"delta":{"role":"assistant"},"index":0}]}
    {"choices":[{"delta":{"content":"Hello"},"index":0}]}
    {"choices":[{"delta":{"tool_calls":[{"index":0,"id":"call_1","function":{"name":"f","arguments":"{\\"a"}}]}}]}
    {"choices":[{"delta":{},"finish_reason":"tool_calls","index":0}]}

and the output is the Anthropic Messages event stream::

    event: message_start
    event: content_block_start   (index 0, text)
    event: content_block_delta   (text_delta)
    event: content_block_stop    (index 0)
    event: content_block_start   (index 1, tool_use)
    event: content_block_delta   (input_json_delta, raw argument fragment)
    event: content_block_stop    (index 1)
    event: message_delta         (stop_reason, accumulated content)
    event: message_stop

Only one block is open at a time. Every frame goes through the
``afterTransformResponse`` hook before it is written, so plugins can rewrite
or drop it.

An upstream failure in the middle of a stream does not cut the client off:
the error text is appended to a text block and the stream is closed normally.
"""

import json
import logging
import uuid
from typing import Any, AsyncIterable, AsyncIterator, Mapping, Optional

from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from ..core.context import RequestContext, ResponseContext
from ..core.sse import format_sse_event
from ..plugins.hooks import HookName, HookPipeline
from ..types.completion import (
    ChatCompletion,
    ChatCompletionChunk,
    ToolCallFragment,
    as_chunk,
    as_completion,
)
from .blocks import BlockKind, ContentBlock, StreamingSession

logger = logging.getLogger("ccrouter")

Event = tuple[str, dict[str, Any]]


def convert_stop_reason(finish_reason: Optional[str]) -> str:
    """Map an OpenAI finish_reason to a Messages stop_reason."""
    return "tool_use" if finish_reason == "tool_calls" else "end_turn"


def new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:24]}"


def _parse_tool_arguments(call: ToolCallFragment) -> Any:
    if not call.arguments:
        return {}
    try:
        return json.loads(call.arguments)
    except json.JSONDecodeError:
        logger.warning("Tool call %s has invalid JSON arguments; passing them through raw", call.id)
        return {"raw": call.arguments}


def build_content_blocks(completion: ChatCompletion) -> list[ContentBlock]:
    """Content for a non-streamed response: one text block, or one block per tool call."""
    if completion.content:
        return [ContentBlock.text_block(completion.content)]
    return [
        ContentBlock.tool_use_block(
            call.id or f"tool_{call.index}",
            call.name or "",
            _parse_tool_arguments(call),
        )
        for call in completion.tool_calls
    ]


def format_stream_error(exc: BaseException) -> str:
    """Text shown to the client when the upstream stream breaks."""
    return json.dumps(
        {"error": {"type": type(exc).__name__, "message": str(exc)}},
        ensure_ascii=False,
    )


async def completion_as_chunks(completion: Any) -> AsyncIterator[ChatCompletionChunk]:
    """Replay a non-streamed completion as a single chunk."""
    completion = as_completion(completion)
    tool_calls = [
        ToolCallFragment(
            index=call.index,
            id=call.id,
            name=call.name,
            arguments=call.arguments,
        )
        for call in completion.tool_calls
    ]
    yield ChatCompletionChunk(
        content=completion.content,
        tool_calls=tool_calls,
        finish_reason=completion.finish_reason,
        usage=completion.usage,
    )


class ChatToMessagesStreamAdapter:
    """Translates one upstream completion into Messages output.

    One instance serves exactly one request.
    """

    def __init__(
        self,
        request_ctx: RequestContext,
        response_ctx: ResponseContext,
        hooks: HookPipeline,
        *,
        message_id: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.request_ctx = request_ctx
        self.response_ctx = response_ctx
        self.hooks = hooks
        self.message_id = message_id or new_message_id()
        self.model = model or request_ctx.model or request_ctx.body.get("model", "")

        self.session = StreamingSession()
        self.input_tokens = 0
        self.output_tokens = 0

    # -- non-streaming -----------------------------------------------------

    async def translate_completion(self, completion: Any) -> Any:
        """Build the full Messages response for a non-streamed completion."""
        completion = as_completion(completion)
        self._record_usage(completion.usage)
        message = {
            "id": self.message_id,
            "type": "message",
            "role": "assistant",
            "model": self.model,
            "content": [block.to_dict() for block in build_content_blocks(completion)],
            "stop_reason": convert_stop_reason(completion.finish_reason),
            "stop_sequence": None,
            "usage": {
                "input_tokens": self.input_tokens,
                "output_tokens": self.output_tokens,
            },
        }
        self.response_ctx.transformed_completion = message
        message = await self.hooks.transform(
            HookName.AFTER_TRANSFORM_RESPONSE,
            self.request_ctx,
            self.response_ctx,
            message,
        )
        self.response_ctx.transformed_completion = message
        return message

    # -- streaming ---------------------------------------------------------

    async def adapt_stream(self, chunks: AsyncIterable[Any]) -> AsyncIterator[bytes]:
        """Consume upstream chunks and yield Messages SSE frames."""
        async for frame in self._write([self._message_start()]):
            yield frame

        try:
            async for raw in chunks:
                logger.debug("Processing chunk: %s", raw)
                events = self._process_chunk(as_chunk(raw))
                async for frame in self._write(events):
                    yield frame
        except Exception as exc:
            logger.warning("Upstream stream failed mid-response: %s", exc)
            async for frame in self._write(self._fold_error(exc)):
                yield frame

        async for frame in self._write(await self._terminal_events()):
            yield frame

    def _process_chunk(self, chunk: ChatCompletionChunk) -> list[Event]:
        events: list[Event] = []
        self._record_usage(chunk.usage)

        # Fragments for the open tool block land before any text closes it
        pending = list(chunk.tool_calls)
        if self.session.open_kind is BlockKind.TOOL:
            for call in [c for c in pending if c.index == self.session.open_position]:
                events.extend(self._process_tool_call(call))
                pending.remove(call)

        if chunk.content:
            events.extend(self._process_text(chunk.content))

        for call in pending:
            events.extend(self._process_tool_call(call))

        if chunk.finish_reason == "tool_calls" and self.session.open_kind is BlockKind.TOOL:
            events.extend(self._close_block())
        return events

    def _process_text(self, text: str) -> list[Event]:
        events: list[Event] = []
        if self.session.open_kind is BlockKind.TOOL:
            events.extend(self._close_block())
        if self.session.open_kind is BlockKind.NONE:
            events.extend(self._open_text())

        self.session.append_text(text)
        events.append(self._content_block_delta({"type": "text_delta", "text": text}))
        return events

    def _process_tool_call(self, call: ToolCallFragment) -> list[Event]:
        events: list[Event] = []
        session = self.session
        position = call.index

        if not session.has_position(position):
            events.extend(self._close_block())
            block = session.open_tool(position, call.id or f"tool_{position}", call.name or "")
            events.append(self._content_block_start(block))
        elif session.open_kind is not BlockKind.TOOL or session.open_position != position:
            logger.warning(
                "Dropping tool call fragment for position %s: its block is already closed",
                position,
            )
            return events
        elif call.name and not session.tool_blocks[position].name:
            session.tool_blocks[position].name = call.name

        if call.arguments:
            session.append_tool_argument(position, call.arguments)
            events.append(
                self._content_block_delta(
                    {"type": "input_json_delta", "partial_json": call.arguments}
                )
            )
        return events

    def _fold_error(self, exc: BaseException) -> list[Event]:
        events: list[Event] = []
        if self.session.open_kind is BlockKind.TOOL:
            events.extend(self._close_block())
        if self.session.open_kind is BlockKind.NONE:
            events.extend(self._open_text())

        text = format_stream_error(exc)
        self.session.append_text(text)
        events.append(self._content_block_delta({"type": "text_delta", "text": text}))
        return events

    async def _terminal_events(self) -> list[Event]:
        events = self._close_block()

        content = await self.hooks.transform(
            HookName.AFTER_TRANSFORM_RESPONSE,
            self.request_ctx,
            self.response_ctx,
            self.session.blocks_as_dicts(),
        )
        try:
            json.dumps(content)
        except (TypeError, ValueError):
            logger.exception(
                "afterTransformResponse returned unserializable content; using the original blocks"
            )
            content = self.session.blocks_as_dicts()
        self.response_ctx.transformed_completion = content

        events.append((
            "message_delta",
            {
                "type": "message_delta",
                "delta": {
                    "stop_reason": self.stop_reason,
                    "stop_sequence": None,
                    "content": content,
                },
                "usage": {
                    "input_tokens": self.input_tokens,
                    "output_tokens": self.output_tokens,
                },
            },
        ))
        events.append(("message_stop", {"type": "message_stop"}))
        return events

    @property
    def stop_reason(self) -> str:
        """``tool_use`` if any tool block was opened during the stream."""
        return "tool_use" if self.session.saw_tool_use else "end_turn"

    def _record_usage(self, usage: Optional[Mapping[str, Any]]) -> None:
        if not usage:
            return
        self.input_tokens = usage.get("prompt_tokens", self.input_tokens) or 0
        self.output_tokens = usage.get("completion_tokens", self.output_tokens) or 0

    # -- event builders ----------------------------------------------------

    def _message_start(self) -> Event:
        message = {
            "id": self.message_id,
            "type": "message",
            "role": "assistant",
            "content": [],
            "model": self.model,
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": self.input_tokens, "output_tokens": 0},
        }
        return "message_start", {"type": "message_start", "message": message}

    def _open_text(self) -> list[Event]:
        block = self.session.open_text()
        if block is None:
            return []
        return [self._content_block_start(block)]

    def _content_block_start(self, block: ContentBlock) -> Event:
        return "content_block_start", {
            "type": "content_block_start",
            "index": self.session.content_block_index,
            "content_block": block.to_dict(),
        }

    def _content_block_delta(self, delta: dict[str, Any]) -> Event:
        return "content_block_delta", {
            "type": "content_block_delta",
            "index": self.session.content_block_index,
            "delta": delta,
        }

    def _close_block(self) -> list[Event]:
        index = self.session.content_block_index
        if not self.session.close():
            return []
        return [("content_block_stop", {"type": "content_block_stop", "index": index})]

    async def _write(self, events: list[Event]) -> AsyncIterator[bytes]:
        """Serialize events, pass each frame through the hooks, yield the result."""
        for event_type, data in events:
            frame = format_sse_event(event_type, data)
            frame = await self.hooks.transform(
                HookName.AFTER_TRANSFORM_RESPONSE,
                self.request_ctx,
                self.response_ctx,
                frame,
                accept=str,
            )
            if not frame:
                continue
            logger.debug("response: %s", frame)
            yield frame.encode("utf-8")


async def stream_openai_response(
    request_ctx: RequestContext,
    response_ctx: ResponseContext,
    completion: Any,
    hooks: HookPipeline,
    *,
    message_id: Optional[str] = None,
) -> Response:
    """Run the response hooks and translate *completion* into a client response.

    Streams SSE frames when the client asked for a stream, otherwise returns
    one JSON document. A failure while building the JSON document is answered
    with a 500. An upstream stream replaced by a hook is closed unread.
    """
    upstream = completion
    completion = await hooks.transform(
        HookName.BEFORE_TRANSFORM_RESPONSE,
        request_ctx,
        response_ctx,
        completion,
    )
    if completion is not upstream and hasattr(upstream, "aclose"):
        await upstream.aclose()
    response_ctx.completion = completion
    adapter = ChatToMessagesStreamAdapter(
        request_ctx, response_ctx, hooks, message_id=message_id
    )

    if not request_ctx.stream:
        try:
            message = await adapter.translate_completion(completion)
            body = json.dumps(message, ensure_ascii=False)
        except Exception:
            logger.exception("Error sending response")
            return PlainTextResponse("Internal Server Error", status_code=500)
        return Response(content=body, media_type="application/json")

    if isinstance(completion, (Mapping, ChatCompletion)):
        chunks: AsyncIterable[Any] = completion_as_chunks(completion)
    else:
        chunks = completion

    return StreamingResponse(
        adapter.adapt_stream(chunks),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
