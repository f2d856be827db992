"""Provider configuration and model routing.

A request names its target as ``"<provider>,<model>"``. A bare model name
goes to the configured default route.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .context import RequestContext
from .exceptions import ConfigurationError, ProviderNotFoundError

logger = logging.getLogger("ccrouter")

DEFAULT_TIMEOUT = 600.0


@dataclass
class Provider:
    """An OpenAI-compatible upstream."""

    name: str
    api_base_url: str
    api_key: str = ""
    models: list[str] = field(default_factory=list)
    timeout: float = DEFAULT_TIMEOUT

    @property
    def chat_completions_url(self) -> str:
        base = self.api_base_url.rstrip("/")
        if base.endswith("/chat/completions"):
            return base
        return f"{base}/chat/completions"


def parse_providers(config: Mapping[str, Any]) -> dict[str, Provider]:
    """Build the provider table from the ``providers`` config list."""
    providers: dict[str, Provider] = {}
    for entry in config.get("providers") or []:
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"Provider entry must be a mapping, got {type(entry).__name__}")
        name = entry.get("name")
        base_url = entry.get("api_base_url")
        if not name:
            raise ConfigurationError("Provider entry is missing 'name'")
        if not base_url:
            raise ConfigurationError(f"Provider '{name}' is missing 'api_base_url'")
        if name in providers:
            raise ConfigurationError(f"Provider '{name}' is configured twice")
        try:
            timeout = float(entry.get("timeout", DEFAULT_TIMEOUT))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Provider '{name}' has an invalid timeout") from exc
        providers[str(name)] = Provider(
            name=str(name),
            api_base_url=str(base_url),
            api_key=str(entry.get("api_key") or ""),
            models=[str(m) for m in entry.get("models") or []],
            timeout=timeout,
        )
    return providers


def split_route(value: str) -> tuple[Optional[str], str]:
    if "," not in value:
        return None, value
    provider, model = value.split(",", 1)
    return provider.strip(), model.strip()


class ProviderRouter:
    """Chooses the provider and upstream model for a request."""

    def __init__(self, providers: dict[str, Provider], default_route: Optional[str] = None) -> None:
        self.providers = providers
        self.default_route = default_route

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ProviderRouter":
        router_cfg = config.get("router") or {}
        providers = parse_providers(config)
        default_route = router_cfg.get("default")
        if default_route:
            provider, _ = split_route(str(default_route))
            if provider not in providers:
                raise ConfigurationError(
                    f"Default route '{default_route}' names unknown provider '{provider}'"
                )
        return cls(providers, str(default_route) if default_route else None)

    def route(self, ctx: RequestContext) -> Provider:
        """Set ``ctx.provider``/``ctx.model`` and the body's model. Returns the provider."""
        requested = str(ctx.body.get("model") or "")
        provider_name, model = split_route(requested)
        if provider_name is None:
            if not self.default_route:
                raise ProviderNotFoundError(
                    f"Model '{requested}' has no provider prefix and no default route is configured"
                )
            provider_name, model = split_route(self.default_route)

        provider = self.providers.get(provider_name)
        if provider is None:
            raise ProviderNotFoundError(f"Unknown provider '{provider_name}'")

        ctx.provider = provider.name
        ctx.model = model
        ctx.body["model"] = model
        logger.info("[%s] Routed model '%s' to %s,%s", ctx.request_id, requested, provider.name, model)
        return provider
