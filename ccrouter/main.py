"""FastAPI application factory for ccrouter."""

import logging
import os
from typing import Any, Mapping, Optional

import httpx
from fastapi import FastAPI

from .api.routes import health, messages_endpoint
from .config_loader import load_config
from .core import ProviderRouter, UpstreamClient
from .logging import setup_logging
from .plugins import FilePluginLoader, HookPipeline, PluginLoader, PluginRegistry, load_plugins

logger = logging.getLogger("ccrouter")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3456


def create_app(
    config: Optional[Mapping[str, Any]] = None,
    *,
    registry: Optional[PluginRegistry] = None,
    loader: Optional[PluginLoader] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the application.

    Args:
        config: Parsed configuration; loaded from CCROUTER_CONFIG when omitted.
        registry: Pre-built plugin registry. When omitted the ``plugins``
            config list is loaded through ``loader``.
        loader: Plugin loader, defaults to ``FilePluginLoader(plugins_dir)``.
        transport: httpx transport for upstream calls (tests).
    """
    if config is None:
        config = load_config()
    setup_logging(config.get("log_level"))

    router = ProviderRouter.from_config(config)
    if registry is None:
        if loader is None:
            loader = FilePluginLoader(config.get("plugins_dir"))
        registry = load_plugins(config.get("plugins") or [], loader)
    elif not registry.frozen:
        registry.freeze()

    app = FastAPI(title="ccrouter")
    app.state.config = config
    app.state.router = router
    app.state.hooks = HookPipeline(registry)
    app.state.upstream = UpstreamClient(transport)

    app.post("/v1/messages")(messages_endpoint)
    app.get("/health")(health)

    logger.info(f"Providers: {list(router.providers)}")
    logger.info(f"Default route: {router.default_route}")
    logger.info(f"Plugins (in hook order): {registry.names()}")
    return app


def resolve_server_address(config: Mapping[str, Any]) -> tuple[str, int]:
    """Host/port from CCROUTER_HOST/CCROUTER_PORT, then config ``server``."""
    server_cfg = config.get("server") or {}
    host = os.getenv("CCROUTER_HOST") or str(server_cfg.get("host", DEFAULT_HOST))
    port_raw = os.getenv("CCROUTER_PORT") or server_cfg.get("port", DEFAULT_PORT)
    try:
        port = int(port_raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid port {port_raw!r}; using {DEFAULT_PORT}")
        port = DEFAULT_PORT
    return host, port


def main() -> None:
    import uvicorn

    config = load_config()
    app = create_app(config)
    host, port = resolve_server_address(config)
    logger.info("ccrouter listening on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
