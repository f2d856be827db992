"""Core module initialization."""

from .context import RequestContext, ResponseContext
from .exceptions import (
    ConfigurationError,
    InvalidRequestError,
    PluginLoadError,
    ProviderNotFoundError,
    ProxyError,
    UpstreamError,
)
from .router import Provider, ProviderRouter, parse_providers
from .sse import SSEDecoder, detect_sse_payload_error, format_sse_event
from .upstream import UpstreamClient

__all__ = [
    "ConfigurationError",
    "InvalidRequestError",
    "PluginLoadError",
    "Provider",
    "ProviderNotFoundError",
    "ProviderRouter",
    "ProxyError",
    "RequestContext",
    "ResponseContext",
    "SSEDecoder",
    "UpstreamClient",
    "UpstreamError",
    "detect_sse_payload_error",
    "format_sse_event",
    "parse_providers",
]
