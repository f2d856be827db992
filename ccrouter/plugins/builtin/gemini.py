"""Rewrite OpenAI-format requests into a shape Gemini accepts.

Gemini rejects string ``format`` values other than ``enum``/``date-time`` and
objects with empty ``properties``. It also rejects assistant messages whose
content is null.
"""

import json

ALLOWED_STRING_FORMATS = {"enum", "date-time"}


def _rewrite_tool(tool):
    function = tool.get("function") or {}
    parameters = function.get("parameters") or {}
    properties = parameters.get("properties") or {}

    if function.get("name") == "BatchTool":
        invocations = properties.get("invocations") or {}
        item_props = (invocations.get("items") or {}).get("properties") or {}
        if "input" in item_props:
            item_props["input"]["type"] = "number"
        return

    for prop in properties.values():
        if (
            isinstance(prop, dict)
            and prop.get("type") == "string"
            and prop.get("format") not in ALLOWED_STRING_FORMATS
        ):
            prop.pop("format", None)


def after_transform_request(request_ctx, response_ctx):
    body = request_ctx.body
    tools = body.get("tools")
    if isinstance(tools, list):
        for tool in tools:
            _rewrite_tool(tool)

    for message in body.get("messages") or []:
        if message.get("content") is None and message.get("tool_calls"):
            message["content"] = json.dumps(message["tool_calls"])
