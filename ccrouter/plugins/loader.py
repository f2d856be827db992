"""Plugin loading.

Plugins are configured by name. The part after the last comma names the
plugin file; anything before it is the provider scope kept on the registry
entry (``"gemini,gemini"`` loads ``gemini.py`` for the ``gemini`` provider).
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Iterable, Optional, Protocol

from ..core.exceptions import PluginLoadError
from .hooks import HOOK_ATTRIBUTES, PluginRegistry, implements_any_hook

logger = logging.getLogger("ccrouter")

BUILTIN_PACKAGE = "ccrouter.plugins.builtin"


def plugin_file_name(name: str) -> str:
    return name.split(",")[-1].strip()


class PluginLoader(Protocol):
    def load(self, name: str) -> Any:
        """Return the plugin object for a configured plugin name."""
        ...


class FilePluginLoader:
    """Loads ``<plugins_dir>/<file>.py``, falling back to the built-in plugins."""

    def __init__(self, plugins_dir: Optional[str | Path] = None, *, use_builtins: bool = True) -> None:
        self.plugins_dir = Path(plugins_dir).expanduser() if plugins_dir else None
        self.use_builtins = use_builtins

    def load(self, name: str) -> Any:
        file_name = plugin_file_name(name)
        if not file_name:
            raise PluginLoadError(f"Plugin name '{name}' has no file part", name)

        module = self._load_from_dir(name, file_name)
        if module is None and self.use_builtins:
            module = self._load_builtin(name, file_name)
        if module is None:
            raise PluginLoadError(f"Plugin '{name}' not found", name)

        if not implements_any_hook(module):
            raise PluginLoadError(
                f"Plugin {name} does not export any of: {', '.join(HOOK_ATTRIBUTES)}",
                name,
            )
        return module

    def _load_from_dir(self, name: str, file_name: str) -> Optional[ModuleType]:
        if self.plugins_dir is None:
            return None
        path = self.plugins_dir / f"{file_name}.py"
        if not path.is_file():
            return None
        spec = importlib.util.spec_from_file_location(f"ccrouter_plugin_{file_name}", path)
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"Cannot import plugin file {path}", name)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            raise PluginLoadError(f"Failed to import plugin {name} from {path}: {exc}", name) from exc
        return module

    def _load_builtin(self, name: str, file_name: str) -> Optional[ModuleType]:
        module_name = f"{BUILTIN_PACKAGE}.{file_name}"
        try:
            return importlib.import_module(module_name)
        except ModuleNotFoundError as exc:
            if exc.name == module_name:
                return None
            raise PluginLoadError(f"Failed to import built-in plugin {name}: {exc}", name) from exc


def load_plugins(names: Iterable[str], loader: PluginLoader) -> PluginRegistry:
    """Load every configured plugin into a frozen registry.

    A plugin that fails to load aborts startup.
    """
    names = list(names)
    logger.info("Loading plugins: %s", names)
    registry = PluginRegistry()
    for name in names:
        try:
            plugin = loader.load(name)
        except PluginLoadError:
            logger.error("Failed to load plugin %s", name)
            raise
        registry.register(name, plugin)
        logger.info("Plugin %s loaded successfully.", name)
    return registry.freeze()
