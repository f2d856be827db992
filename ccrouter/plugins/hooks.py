"""Plugin registry and hook dispatch.

Plugins are plain objects (usually modules) exposing any subset of six hook
functions. Hooks run in registration order. A plugin registered as
``"<provider>,<name>"`` only runs for requests routed to ``<provider>``.

There are two kinds of hooks:

- mutating hooks (router and request hooks): the return value is ignored,
  plugins rewrite ``request_ctx.body`` in place
- transform hooks (response hooks): a returned value replaces the value
  being transformed (the completion, or a serialized event)

A failing plugin is logged and skipped; it never aborts the request.
"""

from __future__ import annotations

import inspect
import logging
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from ..core.context import RequestContext, ResponseContext

logger = logging.getLogger("ccrouter")


class HookName(str, Enum):
    """Hook points in request lifecycle order."""

    BEFORE_ROUTER = "beforeRouter"
    AFTER_ROUTER = "afterRouter"
    BEFORE_TRANSFORM_REQUEST = "beforeTransformRequest"
    AFTER_TRANSFORM_REQUEST = "afterTransformRequest"
    BEFORE_TRANSFORM_RESPONSE = "beforeTransformResponse"
    AFTER_TRANSFORM_RESPONSE = "afterTransformResponse"

    @property
    def attribute(self) -> str:
        """Python attribute a plugin defines for this hook (e.g. ``before_router``)."""
        return {
            HookName.BEFORE_ROUTER: "before_router",
            HookName.AFTER_ROUTER: "after_router",
            HookName.BEFORE_TRANSFORM_REQUEST: "before_transform_request",
            HookName.AFTER_TRANSFORM_REQUEST: "after_transform_request",
            HookName.BEFORE_TRANSFORM_RESPONSE: "before_transform_response",
            HookName.AFTER_TRANSFORM_RESPONSE: "after_transform_response",
        }[self]

    @property
    def is_transform(self) -> bool:
        return self in (HookName.BEFORE_TRANSFORM_RESPONSE, HookName.AFTER_TRANSFORM_RESPONSE)


HOOK_ATTRIBUTES = tuple(hook.attribute for hook in HookName)


def get_hook(plugin: Any, hook: HookName) -> Optional[Callable[..., Any]]:
    func = getattr(plugin, hook.attribute, None)
    return func if callable(func) else None


def implements_any_hook(plugin: Any) -> bool:
    return any(get_hook(plugin, hook) is not None for hook in HookName)


def plugin_scope(name: str) -> Optional[str]:
    """Return the provider a plugin name is scoped to, or None if unscoped."""
    if "," not in name:
        return None
    return name.split(",", 1)[0]


def applies_to_provider(name: str, provider: Optional[str]) -> bool:
    scope = plugin_scope(name)
    return scope is None or scope == provider


class PluginRegistry:
    """Ordered plugin name -> plugin mapping.

    Built once at startup and frozen before requests are served.
    """

    def __init__(self) -> None:
        self._plugins: dict[str, Any] = {}
        self._frozen = False

    def register(self, name: str, plugin: Any) -> None:
        if self._frozen:
            raise RuntimeError("Plugin registry is frozen")
        if name in self._plugins:
            raise ValueError(f"Plugin '{name}' is already registered")
        self._plugins[name] = plugin

    def freeze(self) -> "PluginRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> list[str]:
        return list(self._plugins)

    def items(self) -> Iterator[tuple[str, Any]]:
        return iter(list(self._plugins.items()))

    def get(self, name: str) -> Optional[Any]:
        return self._plugins.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)


class HookPipeline:
    """Dispatches hooks across a registry, honouring provider scoping."""

    def __init__(self, registry: Optional[PluginRegistry] = None) -> None:
        self.registry = registry if registry is not None else PluginRegistry().freeze()

    def _hooks_for(
        self, hook: HookName, provider: Optional[str]
    ) -> Iterator[tuple[str, Callable[..., Any]]]:
        for name, plugin in self.registry.items():
            if not applies_to_provider(name, provider):
                continue
            func = get_hook(plugin, hook)
            if func is not None:
                yield name, func

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        result = func(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def run(
        self,
        hook: HookName,
        request_ctx: RequestContext,
        response_ctx: ResponseContext,
    ) -> None:
        """Run a mutating hook on every applicable plugin."""
        for name, func in self._hooks_for(hook, request_ctx.provider):
            try:
                await self._call(func, request_ctx, response_ctx)
                logger.debug("Plugin %s executed hook: %s", name, hook.value)
            except Exception:
                logger.exception("Error in plugin %s during hook %s", name, hook.value)

    async def transform(
        self,
        hook: HookName,
        request_ctx: RequestContext,
        response_ctx: ResponseContext,
        value: Any,
        *,
        accept: Optional[type | tuple[type, ...]] = None,
    ) -> Any:
        """Thread *value* through a transform hook and return the result.

        ``beforeTransformResponse`` receives ``{"completion": value}``.
        ``afterTransformResponse`` receives ``{"completion": ...,
        "transformed_completion": value}``. A plugin's return value replaces
        *value* when it is not None (and, if *accept* is given, is an
        instance of it).
        """
        if not hook.is_transform:
            raise ValueError(f"{hook.value} is not a transform hook")

        for name, func in self._hooks_for(hook, request_ctx.provider):
            if hook is HookName.BEFORE_TRANSFORM_RESPONSE:
                extra = {"completion": value}
            else:
                extra = {
                    "completion": response_ctx.completion,
                    "transformed_completion": value,
                }
            try:
                result = await self._call(func, request_ctx, response_ctx, extra)
            except Exception:
                logger.exception("Error in plugin %s during hook %s", name, hook.value)
                continue
            if result is None:
                continue
            if accept is not None and not isinstance(result, accept):
                logger.debug(
                    "Plugin %s returned %s from %s; keeping previous value",
                    name,
                    type(result).__name__,
                    hook.value,
                )
                continue
            value = result
        return value
