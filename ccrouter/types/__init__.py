"""Type definitions for upstream completions."""

from .completion import (
    ChatCompletion,
    ChatCompletionChunk,
    ToolCallFragment,
    as_chunk,
    as_completion,
)

__all__ = [
    "ChatCompletion",
    "ChatCompletionChunk",
    "ToolCallFragment",
    "as_chunk",
    "as_completion",
]
