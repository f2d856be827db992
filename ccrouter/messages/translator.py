"""Anthropic Messages request -> OpenAI Chat Completions request.

Key mappings:
- top-level ``system`` -> leading system message
- ``tool_result`` blocks -> ``role: tool`` messages
- assistant ``tool_use`` blocks -> ``tool_calls``
- ``tools`` / ``tool_choice`` -> function tools
- ``stop_sequences`` -> ``stop``
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Mapping

from ..core.exceptions import InvalidRequestError

logger = logging.getLogger("ccrouter")

PASSTHROUGH_PARAMS = ("max_tokens", "temperature", "top_p", "stream")


def _objects(items: Any, where: str) -> list[Mapping[str, Any]]:
    """Return *items* if it is a list of JSON objects, else reject the request."""
    if not isinstance(items, list) or not all(isinstance(item, Mapping) for item in items):
        raise InvalidRequestError(f"{where} must be a list of objects", code="invalid_content")
    return items


def _image_part(block: Mapping[str, Any]) -> dict[str, Any]:
    source = block.get("source") or {}
    if source.get("type") == "base64":
        url = f"data:{source.get('media_type', 'image/png')};base64,{source.get('data', '')}"
    else:
        url = source.get("url", "")
    return {"type": "image_url", "image_url": {"url": url}}


def _tool_result_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part.get("text", "")
            for part in _objects(content, "tool_result content")
            if part.get("type") == "text"
        )
    return "" if content is None else json.dumps(content, ensure_ascii=False)


def _convert_blocks(
    blocks: list[Mapping[str, Any]],
) -> tuple[str | list[dict[str, Any]] | None, list[dict[str, Any]]]:
    parts: list[dict[str, Any]] = []
    tool_calls: list[dict[str, Any]] = []

    for block in blocks:
        block_type = block.get("type")
        if block_type == "text":
            parts.append({"type": "text", "text": block.get("text", "")})
        elif block_type == "image":
            parts.append(_image_part(block))
        elif block_type == "tool_use":
            arguments = block.get("input", {})
            tool_calls.append({
                "id": block.get("id") or f"call_{uuid.uuid4().hex[:8]}",
                "type": "function",
                "function": {
                    "name": block.get("name", ""),
                    "arguments": arguments
                    if isinstance(arguments, str)
                    else json.dumps(arguments, ensure_ascii=False),
                },
            })
        elif block_type in ("thinking", "redacted_thinking"):
            logger.debug("Dropping %s block during translation", block_type)
        else:
            logger.warning("Unknown content block type: %s", block_type)

    if not parts:
        content = None
    elif all(part["type"] == "text" for part in parts):
        content = "".join(part["text"] for part in parts)
    else:
        content = parts
    return content, tool_calls


def _convert_system(system: Any) -> dict[str, Any] | None:
    if not system:
        return None
    if isinstance(system, str):
        return {"role": "system", "content": system}
    text = "\n".join(
        block.get("text", "")
        for block in _objects(system, "system")
        if block.get("type") == "text"
    )
    return {"role": "system", "content": text} if text else None


def _convert_tool_choice(tool_choice: Any) -> Any:
    if tool_choice is None:
        return None
    if not isinstance(tool_choice, (str, Mapping)):
        raise InvalidRequestError(
            "tool_choice must be a string or an object", code="invalid_content"
        )
    choice_type = tool_choice if isinstance(tool_choice, str) else tool_choice.get("type")
    if choice_type == "tool":
        return {"type": "function", "function": {"name": tool_choice.get("name", "")}}
    if choice_type == "any":
        return "required"
    if choice_type in ("auto", "none"):
        return choice_type
    return None


def _convert_tools(tools: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.get("name", ""),
                "description": tool.get("description", ""),
                "parameters": tool.get("input_schema", {}),
            },
        }
        for tool in _objects(tools, "tools")
    ]


def messages_to_chat_completions(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Translate an Anthropic Messages request body to a Chat Completions body."""
    messages: list[dict[str, Any]] = []

    system_message = _convert_system(payload.get("system"))
    if system_message:
        messages.append(system_message)

    for msg in _objects(payload.get("messages", []), "messages"):
        role = msg.get("role", "user")
        content = msg.get("content")

        if not isinstance(content, list):
            if content is not None and not isinstance(content, str):
                raise InvalidRequestError(
                    "message content must be a string or a list", code="invalid_content"
                )
            messages.append({"role": role, "content": content if content is not None else ""})
            continue

        content = _objects(content, "message content")
        for result in (b for b in content if b.get("type") == "tool_result"):
            text = _tool_result_text(result.get("content"))
            if result.get("is_error"):
                text = f"[Error] {text}"
            messages.append({
                "role": "tool",
                "tool_call_id": result.get("tool_use_id", ""),
                "content": text,
            })

        other_blocks = [b for b in content if b.get("type") != "tool_result"]
        if not other_blocks:
            continue
        converted, tool_calls = _convert_blocks(other_blocks)
        if role == "assistant":
            if converted is None and not tool_calls:
                continue
            assistant: dict[str, Any] = {"role": "assistant", "content": converted}
            if tool_calls:
                assistant["tool_calls"] = tool_calls
            messages.append(assistant)
        elif converted is not None:
            messages.append({"role": role, "content": converted})

    result: dict[str, Any] = {"model": payload.get("model", ""), "messages": messages}
    for param in PASSTHROUGH_PARAMS:
        if param in payload:
            result[param] = payload[param]
    if "stop_sequences" in payload:
        result["stop"] = payload["stop_sequences"]

    if payload.get("tools"):
        result["tools"] = _convert_tools(payload["tools"])
    tool_choice = _convert_tool_choice(payload.get("tool_choice"))
    if tool_choice is not None:
        result["tool_choice"] = tool_choice

    metadata = payload.get("metadata")
    if isinstance(metadata, Mapping) and "user_id" in metadata:
        result["user"] = metadata["user_id"]

    return result
