"""ProfileService — settings-aware façade over the Connection model.

Higher layers (transport adapters, settings daemons) use this instead of
the domain objects directly: configured tolerance and compare flags are
applied, plugins populate the registry, and domain exceptions turn into
:class:`ServiceResult` errors.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from netprofile.config.settings import NetprofileSettings
from netprofile.domain.connection import Connection, ConnectionScope, GenericMap
from netprofile.domain.errors import MalformedValue, ProfileError, SchemaViolation, UnknownSettingType
from netprofile.domain.registry import SettingRegistry, build_registry
from netprofile.domain.setting import CompareFlags, Severity
from netprofile.plugins.manager import PluginManager
from netprofile.services.result import ServiceError, ServiceResult

logger = logging.getLogger(__name__)


def error_result(op: str, exc: ProfileError) -> ServiceResult:
    """Translate a domain exception into a failed ServiceResult."""
    detail: dict[str, Any] = {}
    if isinstance(exc, UnknownSettingType):
        code = "UNKNOWN_SETTING"
        detail["setting"] = exc.name
    elif isinstance(exc, SchemaViolation):
        code = "SCHEMA_VIOLATION"
        detail = {"setting": exc.setting, "property": exc.property_name}
    elif isinstance(exc, MalformedValue):
        code = "MALFORMED_VALUE"
        detail = {"setting": exc.setting, "property": exc.property_name}
    else:
        code = "PROFILE_ERROR"
    return ServiceResult(ok=False, op=op, error=ServiceError(code=code, message=str(exc), detail=detail))


class ProfileService:
    """Loads, compares, verifies and exports profiles per configured settings.

    Parameters:
        settings: Runtime settings; defaults to ``NetprofileSettings()``.
        registry: Setting registry; built from the built-in kinds (plus
            plugins, if enabled) when omitted.
        plugins: Plugin manager; created and discovered when plugins are
            enabled and none is supplied.
    """

    def __init__(
        self,
        settings: NetprofileSettings | None = None,
        *,
        registry: SettingRegistry | None = None,
        plugins: PluginManager | None = None,
    ) -> None:
        self._settings = settings or NetprofileSettings()
        if plugins is None and self._settings.registry.load_plugins:
            plugins = PluginManager()
            plugins.discover_and_load(group=self._settings.registry.entry_point_group)
        self._plugins = plugins
        if registry is None:
            registry = build_registry()
            if plugins is not None:
                plugins.populate_registry(registry, disabled=self._settings.registry.disabled)
        self._registry = registry

    @property
    def registry(self) -> SettingRegistry:
        return self._registry

    def _tolerance(self) -> float:
        return self._settings.compare.float_tolerance

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def load(
        self,
        mapping: GenericMap,
        *,
        scope: ConnectionScope = ConnectionScope.UNKNOWN,
        path: str | None = None,
    ) -> ServiceResult:
        """Parse *mapping* into a Connection (``data["connection"]``)."""
        op = "load"
        try:
            connection = Connection.from_generic_map(mapping, self._registry, scope=scope, path=path)
        except ProfileError as exc:
            logger.debug("Failed to load profile %s: %s", path, exc)
            return error_result(op, exc)
        if self._plugins is not None:
            connection.subscribe_secrets_updated(self._plugins.secrets_listener)
        return ServiceResult(
            ok=True,
            op=op,
            data={"connection": connection, "settings": sorted(connection.settings)},
        )

    def compare(
        self,
        left: Connection,
        right: Connection,
        flags: CompareFlags | None = None,
    ) -> ServiceResult:
        """Compare two profiles; ``data`` holds ``equal`` and per-setting ``diff``."""
        if flags is None:
            flags = self._settings.compare_flags()
        diff = left.diff(right, flags, tolerance=self._tolerance())
        return ServiceResult(ok=True, op="compare", data={"equal": not diff, "diff": diff})

    def verify(self, connection: Connection) -> ServiceResult:
        """Verify *connection*; ``ok`` is False when any problem is fatal."""
        op = "verify"
        problems = connection.verify()
        fatal = [p for p in problems if p.severity is Severity.FATAL]
        warnings = [_describe(p.setting, p.property, p.message) for p in problems if not p.is_fatal]
        data = {
            "usable": not fatal,
            "problems": [
                {
                    "severity": p.severity.value,
                    "setting": p.setting,
                    "property": p.property,
                    "message": p.message,
                    "owner": connection.setting_for_problem(p),
                }
                for p in problems
            ],
        }
        if fatal:
            first = fatal[0]
            error = ServiceError(
                code="INVALID_PROFILE",
                message=_describe(first.setting, first.property, first.message),
                detail={"fatal_count": len(fatal)},
            )
            return ServiceResult(ok=False, op=op, data=data, warnings=warnings, error=error)
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    def need_secrets(self, connection: Connection) -> ServiceResult:
        """Report missing secrets as ``{setting: [{property, required}]}``."""
        hints = connection.need_secrets()
        data = {
            "needed": {
                name: [{"property": h.property, "required": h.required} for h in setting_hints]
                for name, setting_hints in hints.items()
            }
        }
        return ServiceResult(ok=True, op="need_secrets", data=data)

    def apply_secrets(
        self,
        connection: Connection,
        secrets: Mapping[str, Mapping[str, Any]],
    ) -> ServiceResult:
        """Merge *secrets* into *connection*; report what changed."""
        updated = connection.update_secrets(secrets)
        warnings = [f"No setting {name!r} to receive secrets" for name in secrets if name not in connection]
        return ServiceResult(ok=True, op="apply_secrets", data={"updated": updated}, warnings=warnings)

    def export(self, connection: Connection, *, include_secrets: bool | None = None) -> ServiceResult:
        """Export *connection* as plain Python data (values unwrapped)."""
        if include_secrets is None:
            include_secrets = self._settings.secrets.export_secrets
        generic = connection.to_generic_map(include_secrets=include_secrets)
        data = {
            "path": connection.path,
            "scope": connection.scope.value,
            "settings": {
                name: {prop: value.to_python() for prop, value in properties.items()}
                for name, properties in generic.items()
            },
        }
        return ServiceResult(ok=True, op="export", data=data)


def _describe(setting: str, prop: str | None, message: str) -> str:
    return f"{setting}.{prop}: {message}" if prop else f"{setting}: {message}"
