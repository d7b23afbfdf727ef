"""Language plugin implementations and the registry that selects them."""

from __future__ import annotations

from importlib import metadata
from typing import Dict, Iterable, List, Optional

from ..logging import get_logger
from .base import LanguagePlugin, empty_semantic_file
from .python import PythonPlugin
from .tree_sitter import TypeScriptTreeSitterPlugin, ast_backend_available
from .typescript import TypeScriptRegexPlugin

logger = get_logger("analyzers")

_ENTRY_POINT_GROUP = "ontogen.plugins"


class PluginRegistry:
    """Ordered set of plugins; the first plugin that can handle a path wins."""

    def __init__(self) -> None:
        self._plugins: Dict[str, LanguagePlugin] = {}

    def register(self, plugin: LanguagePlugin) -> None:
        if not isinstance(plugin, LanguagePlugin):
            raise TypeError(f"{plugin!r} is not a LanguagePlugin")
        if plugin.name in self._plugins:
            logger.warning("Plugin '%s' is already registered; replacing it", plugin.name)
        self._plugins[plugin.name] = plugin
        logger.debug("Registered plugin %s (%s)", plugin.name, ", ".join(plugin.extensions))

    def plugin_for(self, path: str) -> Optional[LanguagePlugin]:
        for plugin in self._plugins.values():
            if plugin.can_handle(path):
                return plugin
        return None

    def languages(self) -> List[str]:
        return [plugin.language for plugin in self._plugins.values()]

    def has_plugin(self, name: str) -> bool:
        return name in self._plugins

    def plugins(self) -> List[LanguagePlugin]:
        return list(self._plugins.values())

    @classmethod
    def create_default(
        cls, prefer_ast: Optional[bool] = None, *, discover: bool = True
    ) -> "PluginRegistry":
        """Return a registry with the built-in plugins and any installed entry points.

        The TypeScript backend is chosen here, once: the tree-sitter plugin
        when its grammar loads (or ``prefer_ast`` forces it), otherwise the
        regex plugin.
        """
        registry = cls()
        use_ast = ast_backend_available() if prefer_ast is None else prefer_ast
        if use_ast:
            registry.register(TypeScriptTreeSitterPlugin(fallback=TypeScriptRegexPlugin()))
        else:
            logger.debug("Tree-sitter backend disabled; using regex TypeScript analysis")
            registry.register(TypeScriptRegexPlugin())
        registry.register(PythonPlugin())
        if discover:
            for plugin in discover_plugins():
                registry.register(plugin)
        return registry


def discover_plugins() -> List[LanguagePlugin]:
    """Instantiate plugins published under the ``ontogen.plugins`` entry point group."""
    plugins: List[LanguagePlugin] = []
    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:
            logger.warning("Failed to load plugin entry point '%s': %s", entry.name, exc)
            continue
        try:
            plugins.append(_coerce_plugin(loaded))
        except TypeError as exc:
            logger.warning("Ignoring plugin entry point '%s': %s", entry.name, exc)
    return plugins


def _coerce_plugin(obj: object) -> LanguagePlugin:
    if isinstance(obj, LanguagePlugin):
        return obj
    if isinstance(obj, type) and issubclass(obj, LanguagePlugin):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, LanguagePlugin):
            return instance
    raise TypeError("Plugin entry point must be a LanguagePlugin subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "LanguagePlugin",
    "PluginRegistry",
    "PythonPlugin",
    "TypeScriptRegexPlugin",
    "TypeScriptTreeSitterPlugin",
    "ast_backend_available",
    "discover_plugins",
    "empty_semantic_file",
]
