"""Nudge models that under-use tools by appending a system instruction."""

TOOL_USE_INSTRUCTION = (
    "## **Important Instruction:**  \n"
    "You must use tools as frequently and accurately as possible to help the user solve their problem.\n"
    "Prioritize tool usage whenever it can enhance accuracy, efficiency, or the quality of the response.  "
)


def after_transform_request(request_ctx, response_ctx):
    body = request_ctx.body
    if not body.get("tools"):
        return
    body.setdefault("messages", []).append(
        {"role": "system", "content": TOOL_USE_INSTRUCTION}
    )
