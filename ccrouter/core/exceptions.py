"""Core exceptions for the router."""

from typing import Optional


class ProxyError(Exception):
    """Base exception for router errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ProxyError):
    """Raised when there's an issue with the configuration."""
    pass


class PluginLoadError(ProxyError):
    """Raised when a configured plugin cannot be loaded."""

    def __init__(self, message: str, plugin_name: str) -> None:
        super().__init__(message)
        self.plugin_name = plugin_name


class ProviderNotFoundError(ProxyError):
    """Raised when a request cannot be matched to a configured provider."""
    pass


class InvalidRequestError(ProxyError):
    """Raised when an incoming request is invalid."""

    def __init__(self, message: str, code: str = "invalid_request") -> None:
        super().__init__(message)
        self.code = code


class UpstreamError(ProxyError):
    """Raised when the upstream provider fails or reports an error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
