"""Anthropic Messages translation helpers.

Converts Messages requests into Chat Completions requests, and converts
Chat Completions responses (streamed or not) back into Messages output.
"""

from .blocks import BlockKind, ContentBlock, StreamingSession
from .json_balance import is_balanced_json
from .stream_adapter import (
    ChatToMessagesStreamAdapter,
    convert_stop_reason,
    stream_openai_response,
)
from .translator import messages_to_chat_completions

__all__ = [
    "BlockKind",
    "ContentBlock",
    "StreamingSession",
    "ChatToMessagesStreamAdapter",
    "convert_stop_reason",
    "is_balanced_json",
    "messages_to_chat_completions",
    "stream_openai_response",
]
