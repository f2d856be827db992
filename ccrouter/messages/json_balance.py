"""Bracket balance check for partially streamed tool arguments."""


def is_balanced_json(text: str) -> bool:
    """Return True when every ``{``/``[`` in *text* is closed in order.

    This does not validate JSON. It only tells the caller that a
    ``json.loads`` attempt is not obviously premature, so tiny fragments
    are not parsed over and over while a tool call streams in.
    """
    brace_count = 0
    bracket_count = 0

    for char in text:
        if char == "{":
            brace_count += 1
        elif char == "}":
            brace_count -= 1
        elif char == "[":
            bracket_count += 1
        elif char == "]":
            bracket_count -= 1

        if brace_count < 0 or bracket_count < 0:
            return False

    return brace_count == 0 and bracket_count == 0
