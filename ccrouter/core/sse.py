"""Server-sent events: framing for the client side, decoding for the upstream side."""

import codecs
import json
from dataclasses import dataclass
from typing import Any, Optional

DONE_MARKER = "[DONE]"


@dataclass
class SSEEvent:
    """One decoded event. ``data`` is None for comment-only events."""

    event: Optional[str] = None
    data: Optional[str] = None
    id: Optional[str] = None


def _parse_field(line: str) -> tuple[str, str]:
    name, sep, value = line.partition(":")
    if sep and value.startswith(" "):
        value = value[1:]
    return name, value


class SSEDecoder:
    """Incremental decoder: feed raw bytes, get back complete events.

    Line endings may be LF, CRLF or CR. A blank line ends an event.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._event: Optional[str] = None
        self._data: list[str] = []
        self._id: Optional[str] = None
        self._seen_lines = False

    def feed(self, chunk: bytes) -> list[SSEEvent]:
        if not chunk:
            return []
        text = self._pending + self._decoder.decode(chunk)
        # A trailing CR may be the first half of a CRLF split across reads
        carry = ""
        if text.endswith("\r"):
            text, carry = text[:-1], "\r"
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        *lines, rest = text.split("\n")
        self._pending = rest + carry

        events: list[SSEEvent] = []
        for line in lines:
            event = self._consume(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[SSEEvent]:
        """Emit the event still being built when the stream ends without a blank line."""
        line, self._pending = self._pending.rstrip("\r"), ""
        if line:
            self._consume(line)
        event = self._dispatch()
        return [event] if event is not None else []

    def _consume(self, line: str) -> Optional[SSEEvent]:
        if not line:
            return self._dispatch()
        self._seen_lines = True
        if line.startswith(":"):
            return None
        name, value = _parse_field(line)
        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            self._id = value
        return None

    def _dispatch(self) -> Optional[SSEEvent]:
        if not self._seen_lines:
            return None
        event = SSEEvent(
            event=self._event,
            data="\n".join(self._data) if self._data else None,
            id=self._id,
        )
        self._event, self._data, self._id = None, [], None
        self._seen_lines = False
        return event


def format_sse_event(event_type: str, data: dict[str, Any]) -> str:
    """Format one Messages API event as an SSE frame."""
    return f"event: {event_type}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def detect_sse_payload_error(payload: Any) -> Optional[str]:
    """Return a message if an upstream chunk is really an error report.

    Two shapes are seen in the wild: ``{"type": "error", "error": {...}}``
    (MiniMax and Anthropic-style upstreams) and a bare ``{"error": {...}}``.
    """
    if not isinstance(payload, dict):
        return None

    typed = payload.get("type") == "error"
    error = payload.get("error")
    if not typed and not isinstance(error, dict):
        return None

    if isinstance(error, dict):
        message = error.get("message") or json.dumps(error)
    else:
        message = str(error) if error else "unknown error"

    if typed:
        code = error.get("http_code", "unknown") if isinstance(error, dict) else "unknown"
        return f"SSE stream error: {message} (http_code={code})"
    return f"SSE stream error: {message} (type={error.get('type', 'unknown')})"
