"""Anthropic-compatible Messages API endpoint."""

import json
import logging
import time
import uuid
from typing import Any, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from ...core import (
    InvalidRequestError,
    ProviderNotFoundError,
    RequestContext,
    ResponseContext,
    UpstreamError,
)
from ...messages import messages_to_chat_completions, stream_openai_response
from ...plugins import HookName

logger = logging.getLogger("ccrouter")


def _anthropic_error_response(
    message: str,
    *,
    error_type: str = "invalid_request_error",
    status_code: int = 400,
    error_code: Optional[str] = None,
) -> JSONResponse:
    error: dict[str, Any] = {"type": error_type, "message": message}
    if error_code:
        error["code"] = error_code
    return JSONResponse({"type": "error", "error": error}, status_code=status_code)


async def _read_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    try:
        body = json.loads(raw or b"{}")
    except json.JSONDecodeError as exc:
        raise InvalidRequestError(f"Invalid JSON body: {exc.msg}", code="invalid_json") from exc
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object", code="invalid_body")
    if not body.get("messages"):
        raise InvalidRequestError("'messages' is required", code="missing_messages")
    return body


async def messages_endpoint(request: Request) -> Response:
    """POST /v1/messages - Anthropic Messages API compatible endpoint."""
    req_id = uuid.uuid4().hex[:8]
    start_time = time.perf_counter()
    state = request.app.state

    try:
        body = await _read_body(request)
    except InvalidRequestError as exc:
        logger.info(f"[{req_id}] Rejected request: {exc.message}")
        return _anthropic_error_response(exc.message, error_code=exc.code)

    request_ctx = RequestContext(
        body=body,
        stream=bool(body.get("stream")),
        model=body.get("model"),
        request_id=req_id,
        headers=dict(request.headers),
    )
    response_ctx = ResponseContext()
    hooks = state.hooks

    logger.info(f"[{req_id}] Messages request model={request_ctx.model} stream={request_ctx.stream}")

    await hooks.run(HookName.BEFORE_ROUTER, request_ctx, response_ctx)
    try:
        provider = state.router.route(request_ctx)
    except ProviderNotFoundError as exc:
        logger.warning(f"[{req_id}] {exc.message}")
        return _anthropic_error_response(exc.message, error_code="provider_not_found")
    await hooks.run(HookName.AFTER_ROUTER, request_ctx, response_ctx)

    await hooks.run(HookName.BEFORE_TRANSFORM_REQUEST, request_ctx, response_ctx)
    try:
        request_ctx.body = messages_to_chat_completions(request_ctx.body)
    except InvalidRequestError as exc:
        logger.info(f"[{req_id}] Rejected request: {exc.message}")
        return _anthropic_error_response(exc.message, error_code=exc.code)
    await hooks.run(HookName.AFTER_TRANSFORM_REQUEST, request_ctx, response_ctx)

    upstream = state.upstream
    try:
        if request_ctx.stream:
            completion: Any = await upstream.open_stream(provider, request_ctx.body)
        else:
            completion = await upstream.complete(provider, request_ctx.body)
    except UpstreamError as exc:
        logger.error(f"[{req_id}] Upstream error from {provider.name}: {exc.message}")
        status = exc.status_code if exc.status_code and exc.status_code >= 400 else 502
        return _anthropic_error_response(exc.message, error_type="api_error", status_code=status)

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.info(f"[{req_id}] Upstream {provider.name} answered in {elapsed_ms:.0f}ms")

    return await stream_openai_response(request_ctx, response_ctx, completion, hooks)
