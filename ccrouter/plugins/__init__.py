"""Plugin hooks, registry and loading."""

from .hooks import (
    HookName,
    HookPipeline,
    PluginRegistry,
    applies_to_provider,
    plugin_scope,
)
from .loader import FilePluginLoader, PluginLoader, load_plugins

__all__ = [
    "HookName",
    "HookPipeline",
    "PluginRegistry",
    "PluginLoader",
    "FilePluginLoader",
    "applies_to_provider",
    "plugin_scope",
    "load_plugins",
]
