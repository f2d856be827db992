"""Per-request state shared with plugin hooks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class RequestContext:
    """Request-side state handed to every hook.

    ``body`` is mutable and shared: request hooks rewrite it in place.
    ``provider`` stays None until routing has run.
    """

    body: dict[str, Any]
    stream: bool = False
    provider: Optional[str] = None
    model: Optional[str] = None
    request_id: str = ""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class ResponseContext:
    """Response-side state handed to every hook.

    ``completion`` is the upstream result (after ``beforeTransformResponse``),
    ``transformed_completion`` is the last value produced by the translator.
    ``locals`` is free-form scratch space for plugins.
    """

    completion: Any = None
    transformed_completion: Any = None
    locals: dict[str, Any] = field(default_factory=dict)
