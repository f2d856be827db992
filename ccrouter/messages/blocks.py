"""Content block bookkeeping for one streamed Messages response."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .json_balance import is_balanced_json

logger = logging.getLogger("ccrouter")


class BlockKind(str, Enum):
    NONE = "none"
    TEXT = "text"
    TOOL = "tool"


@dataclass
class ContentBlock:
    """One text or tool_use block of the assistant message."""

    type: str
    id: Optional[str] = None
    name: Optional[str] = None
    text: Optional[str] = None
    input: Optional[Any] = None

    @classmethod
    def text_block(cls, text: str = "") -> "ContentBlock":
        return cls(type="text", text=text)

    @classmethod
    def tool_use_block(cls, id: str, name: str, input: Any = None) -> "ContentBlock":
        return cls(type="tool_use", id=id, name=name, input={} if input is None else input)

    def to_dict(self) -> dict[str, Any]:
        if self.type == "tool_use":
            return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}
        return {"type": "text", "text": self.text or ""}


@dataclass
class StreamingSession:
    """Per-request block state: the blocks announced so far and the open one.

    ``content_block_index`` is the client-facing index of the block being
    emitted. It advances by one each time an open block is closed.
    ``tool_argument_buffers`` is keyed by the upstream tool call position.
    """

    content_block_index: int = 0
    open_kind: BlockKind = BlockKind.NONE
    open_position: Optional[int] = None
    blocks: list[ContentBlock] = field(default_factory=list)
    tool_argument_buffers: dict[int, str] = field(default_factory=dict)
    tool_blocks: dict[int, ContentBlock] = field(default_factory=dict)
    saw_tool_use: bool = False

    @property
    def is_open(self) -> bool:
        return self.open_kind is not BlockKind.NONE

    @property
    def current_block(self) -> Optional[ContentBlock]:
        if not self.is_open:
            return None
        return self.blocks[-1]

    def has_position(self, position: int) -> bool:
        return position in self.tool_argument_buffers

    def open_text(self) -> Optional[ContentBlock]:
        """Open an empty text block. Returns None if a block is already open."""
        if self.is_open:
            return None
        block = ContentBlock.text_block()
        self.blocks.append(block)
        self.open_kind = BlockKind.TEXT
        return block

    def open_tool(self, position: int, id: str, name: str) -> Optional[ContentBlock]:
        """Open a tool_use block for an upstream tool call position."""
        if self.is_open:
            return None
        block = ContentBlock.tool_use_block(id, name)
        self.blocks.append(block)
        self.tool_blocks[position] = block
        self.tool_argument_buffers[position] = ""
        self.open_kind = BlockKind.TOOL
        self.open_position = position
        self.saw_tool_use = True
        return block

    def append_text(self, delta: str) -> None:
        if self.open_kind is not BlockKind.TEXT:
            raise RuntimeError("append_text called without an open text block")
        block = self.blocks[-1]
        block.text = (block.text or "") + delta

    def append_tool_argument(self, position: int, delta: str) -> str:
        """Add an argument fragment and refresh the block input when it parses.

        Returns the whole buffer for the position.
        """
        if self.open_kind is not BlockKind.TOOL or self.open_position != position:
            raise RuntimeError(f"append_tool_argument called for closed position {position}")
        buffer = self.tool_argument_buffers.get(position, "") + delta
        self.tool_argument_buffers[position] = buffer

        if is_balanced_json(buffer):
            try:
                parsed = json.loads(buffer)
            except json.JSONDecodeError as exc:
                logger.debug("Tool argument JSON not parseable yet (continuing to accumulate): %s", exc)
            else:
                self.tool_blocks[position].input = parsed
        return buffer

    def close(self) -> bool:
        """Close the open block, if any. Returns True when a block was closed."""
        if not self.is_open:
            return False
        self.open_kind = BlockKind.NONE
        self.open_position = None
        self.content_block_index += 1
        return True

    def blocks_as_dicts(self) -> list[dict[str, Any]]:
        return [block.to_dict() for block in self.blocks]
