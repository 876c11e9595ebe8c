"""Plugin discovery and loading.

Discovery: entry points (pip-installed) via pluggy setuptools entrypoints.
Capabilities: extra setting kinds, secrets-updated notifications.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

import pluggy

from netprofile.domain.setting import Setting
from netprofile.plugins.hookspecs import PROJECT_NAME, NetprofileHookSpec

if TYPE_CHECKING:
    from netprofile.domain.connection import Connection
    from netprofile.domain.registry import SettingRegistry

ENTRY_POINT_GROUP = "netprofile.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Manages plugin discovery, registry population, and hook dispatch."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(NetprofileHookSpec)
        self._loaded: bool = False

    def discover_and_load(self, *, group: str = ENTRY_POINT_GROUP) -> list[str]:
        """Load plugins from the *group* entry-point group.

        Returns a list of registered plugin names.
        """
        self._pm.load_setuptools_entrypoints(group)
        self._normalize_plugin_instances()
        self._loaded = True
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly."""
        resolved_name = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    @property
    def is_loaded(self) -> bool:
        """Whether discover_and_load() has been called."""
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    # ------------------------------------------------------------------
    # Registry population
    # ------------------------------------------------------------------

    def populate_registry(self, registry: SettingRegistry, *, disabled: list[str] | None = None) -> list[str]:
        """Add every plugin-provided setting kind to *registry*.

        Names in *disabled* are skipped. Invalid or conflicting registrations
        are logged and skipped.

        Returns the names that were registered.
        """
        skip = set(disabled or ())
        added: list[str] = []
        for plugin in self._pm.get_plugins():
            plugin_name = self._pm.get_name(plugin) or plugin.__class__.__name__
            for name, setting_cls in self._collect_setting_types(plugin, plugin_name).items():
                if name in skip:
                    logger.debug("Setting type %s disabled by configuration", name)
                    continue
                if not (inspect.isclass(setting_cls) and issubclass(setting_cls, Setting)):
                    logger.warning(
                        "Plugin %s registered %r with a non-Setting constructor",
                        plugin_name,
                        name,
                    )
                    continue
                try:
                    registry.register(name, setting_cls)
                except ValueError:
                    logger.warning(
                        "Skipping setting type %r from plugin %s",
                        name,
                        plugin_name,
                        exc_info=True,
                    )
                    continue
                added.append(name)
        return added

    @staticmethod
    def _collect_setting_types(plugin: object, plugin_name: str) -> dict[str, type[Setting]]:
        hook = getattr(plugin, "register_setting_types", None)
        if hook is None:
            return {}
        try:
            mapping = hook()
        except Exception:
            logger.warning(
                "Failed to collect setting types from plugin %s",
                plugin_name,
                exc_info=True,
            )
            return {}
        if mapping is None:
            return {}
        if not isinstance(mapping, dict):
            logger.warning("Plugin %s returned non-dict setting type registrations", plugin_name)
            return {}
        return mapping

    # ------------------------------------------------------------------
    # Secrets notifications
    # ------------------------------------------------------------------

    def secrets_listener(self, connection: Connection, setting_name: str) -> None:
        """Connection subscriber that forwards to the ``secrets_updated`` hook."""
        try:
            self._pm.hook.secrets_updated(connection=connection, setting_name=setting_name)
        except Exception:
            logger.warning("secrets_updated hook failed for %s", setting_name, exc_info=True)

    def _normalize_plugin_instances(self) -> None:
        """Replace registered plugin classes with instantiated objects.

        Entry-point loading may register a plugin class directly. Hook dispatch
        against class objects leaves ``self`` unbound and fails at runtime.
        """
        for plugin in list(self._pm.get_plugins()):
            if not inspect.isclass(plugin):
                continue
            plugin_name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)
            try:
                instance = plugin()
            except Exception:
                logger.warning(
                    "Failed to instantiate entry-point plugin %s",
                    plugin_name,
                    exc_info=True,
                )
                continue
            self._pm.register(instance, name=plugin_name)
            logger.debug("Instantiated entry-point plugin: %s", plugin_name)
