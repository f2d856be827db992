"""Typed views over upstream OpenAI chat completion payloads.

Upstream providers send loosely shaped JSON. The translator only relies on a
handful of fields, so each payload is read into one of two variants:

- ``ChatCompletion``: a single non-streamed response
  (``choices[0].message`` + ``finish_reason``)
- ``ChatCompletionChunk``: one streamed delta
  (``choices[0].delta`` + optional ``finish_reason``)

Anything the variants do not model is kept in ``extra`` so plugins and
logging still see the provider-specific attributes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


def _first_choice(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], Mapping):
        return {}
    return choices[0]


@dataclass
class ToolCallFragment:
    """A tool call, or a streamed piece of one.

    Attributes:
        index: Position assigned by the upstream stream. Stable for the
            whole tool call, unrelated to the client-side block index.
        id: Tool call id, usually only present on the first fragment.
        name: Function name, usually only present on the first fragment.
        arguments: Raw JSON text (complete or partial).
    """
    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int) -> "ToolCallFragment":
        function = data.get("function") or {}
        index = data.get("index")
        return cls(
            index=index if isinstance(index, int) else position,
            id=data.get("id") or None,
            name=function.get("name") or None,
            arguments=function.get("arguments"),
        )


@dataclass
class ChatCompletionChunk:
    content: Optional[str] = None
    tool_calls: list[ToolCallFragment] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Optional[dict[str, Any]] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChatCompletionChunk":
        choice = _first_choice(payload)
        delta = choice.get("delta") or {}
        tool_calls = [
            ToolCallFragment.from_dict(tc, position)
            for position, tc in enumerate(delta.get("tool_calls") or [])
            if isinstance(tc, Mapping)
        ]
        content = delta.get("content")
        return cls(
            content=content if isinstance(content, str) else None,
            tool_calls=tool_calls,
            finish_reason=choice.get("finish_reason"),
            usage=payload.get("usage") or None,
            extra={k: v for k, v in payload.items() if k not in ("choices", "usage")},
        )


@dataclass
class ChatCompletion:
    content: Optional[str] = None
    tool_calls: list[ToolCallFragment] = field(default_factory=list)
    finish_reason: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[dict[str, Any]] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChatCompletion":
        choice = _first_choice(payload)
        message = choice.get("message") or {}
        tool_calls = [
            ToolCallFragment.from_dict(tc, position)
            for position, tc in enumerate(message.get("tool_calls") or [])
            if isinstance(tc, Mapping)
        ]
        content = message.get("content")
        return cls(
            content=content if isinstance(content, str) else None,
            tool_calls=tool_calls,
            finish_reason=choice.get("finish_reason"),
            model=payload.get("model"),
            usage=payload.get("usage") or None,
            extra={
                k: v for k, v in payload.items() if k not in ("choices", "usage", "model")
            },
        )


def as_chunk(value: Any) -> ChatCompletionChunk:
    """Accept a raw chunk dict or an already typed chunk."""
    if isinstance(value, ChatCompletionChunk):
        return value
    if isinstance(value, Mapping):
        return ChatCompletionChunk.from_dict(value)
    raise TypeError(f"Unsupported chunk type: {type(value).__name__}")


def as_completion(value: Any) -> ChatCompletion:
    """Accept a raw completion dict or an already typed completion."""
    if isinstance(value, ChatCompletion):
        return value
    if isinstance(value, Mapping):
        return ChatCompletion.from_dict(value)
    raise TypeError(f"Unsupported completion type: {type(value).__name__}")
