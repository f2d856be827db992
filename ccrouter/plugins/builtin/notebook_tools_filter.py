"""Drop notebook and IDE tools that most non-Anthropic models cannot use."""

FILTERED_TOOLS = {"NotebookRead", "NotebookEdit", "mcp__ide__executeCode"}


def before_router(request_ctx, response_ctx):
    tools = request_ctx.body.get("tools")
    if not tools:
        return
    request_ctx.body["tools"] = [
        tool for tool in tools if tool.get("name") not in FILTERED_TOOLS
    ]
